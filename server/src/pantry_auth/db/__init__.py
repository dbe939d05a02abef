"""Database access."""

from pantry_auth.db.client import DatabaseClient, create_supabase_client

__all__ = ["DatabaseClient", "create_supabase_client"]
