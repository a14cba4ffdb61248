"""xledit: apply natural-language cell edits to Excel workbooks."""

__version__ = "0.1.0"
