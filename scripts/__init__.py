"""
Scripts Package.

This package contains operational scripts for the EventHive store.

Scripts:
- bootstrap_db: Provision database, schema and seed data
- verify_database: Read-only check of an existing store
"""

# Scripts are meant to be run directly, not imported
