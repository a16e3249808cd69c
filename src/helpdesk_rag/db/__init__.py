"""Database connection and schema management."""

from helpdesk_rag.db.connection import create_connection, write_transaction
from helpdesk_rag.db.schema import apply_schema

__all__ = ["apply_schema", "create_connection", "write_transaction"]
