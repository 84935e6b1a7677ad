"""
Scripts - Bootstrap Database.

============================================================
RESPONSIBILITY
============================================================
Initializes the EventHive store for first-time setup.

- Creates the target database if absent
- Creates the entity tables in dependency order
- Seeds baseline users, events and tickets
- Verifies the result

Safe to re-run: an already provisioned store is left as is.

============================================================
USAGE
============================================================
python -m scripts.bootstrap_db

Options:
  --database NAME    Target database (default: eventhive)
  --url URL          Server-level SQLAlchemy URL
  --drop-existing    Drop existing tables (DANGEROUS)
  --sample-limit N   Rows sampled per table during verification
  --log-level LEVEL  Logging level

============================================================
"""

import sys

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
