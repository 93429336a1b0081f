"""
SQLite persistence for the audit trail.

- **db_connection.py**: one long-lived aiosqlite connection in WAL mode with
  serialised write transactions
- **db_schema.py**: audit tables and indexes
- **audit_repository.py**: insert and query audit records
"""
