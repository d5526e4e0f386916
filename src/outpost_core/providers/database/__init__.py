"""Database project providers."""

from outpost_core.providers.database.supabase import SupabaseProjectProvider

__all__ = ["SupabaseProjectProvider"]
