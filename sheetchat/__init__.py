"""SheetChat: a conversational assistant over a spreadsheet workbook."""

__version__ = "0.1.0"
