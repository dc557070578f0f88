"""School fee workbook importer.

Reads class fee workbooks (one sheet per class-section) and creates students,
enrollments, fee records and payment transactions in the school database.
"""

__version__ = "0.1.0"
