"""Reflective record forms backed by SQLAlchemy.

Provides the schema checksum guard that refuses to start against a store
whose record types changed without a migration, the ranked query history
behind query suggestion surfaces, and the storage layer those surfaces run
queries against.
"""

__version__ = "0.4.0"
