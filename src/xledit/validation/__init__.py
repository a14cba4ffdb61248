"""Edit policy loading and enforcement."""
