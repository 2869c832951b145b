"""Orchestration layer for the spreadsheet assistant."""
