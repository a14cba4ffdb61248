"""Instruction interpreter, spreadsheet mutator, and envelope dispatch."""
