"""
migration_ledger - spreadsheet ingestion and reconciliation for application migration programs.
"""

__version__ = "0.1.0"
