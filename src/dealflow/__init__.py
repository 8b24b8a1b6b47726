"""Bulk import and entity resolution for the M&A advisory CRM."""

__version__ = "0.1.0"
