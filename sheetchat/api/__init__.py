"""FastAPI application for SheetChat."""
