"""Workbook reading and class sheet parsing."""
