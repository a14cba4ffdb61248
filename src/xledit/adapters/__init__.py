"""Workbook codec and A1 coordinate helpers."""
