"""
SQLite storage.

Components:
- db.py: schema + migrations, connection factory
- item_store.py, category_store.py, dependency_store.py: domain tables
- audit_log.py: delivery claims + one audit entry per processed message
- preferences_store.py: per-subscriber timezone and digest settings
"""
