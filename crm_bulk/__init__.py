"""Bulk CSV import / export pipeline for CRM records.

Parses uploaded CSV text, reconciles rows against existing records held in a
remote row store (create vs. update by natural key) and exports complete table
snapshots back to CSV.
"""

__version__ = "0.3.0"
