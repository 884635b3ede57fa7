"""
Database connection management.

Provides Supabase client singleton for database operations.
"""

from supabase import create_client, Client
from functools import lru_cache
from typing import Optional
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class DatabaseError(Exception):
    """Base exception for database errors."""
    pass


class ConnectionError(DatabaseError):
    """Failed to connect to database."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client

    Raises:
        ConnectionError: If credentials are missing or connection fails
    """
    if not settings.supabase_configured:
        logger.error("supabase_not_configured")
        raise ConnectionError(
            "Supabase credentials missing. Set SUPABASE_URL and SUPABASE_KEY."
        )

    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "..."  # Log partial URL only
        )

        client = create_client(
            settings.supabase_url.strip().strip("\"'"),
            settings.supabase_key.strip().strip("\"'")
        )

        # Test connection with simple query
        client.table("locations").select("id").limit(1).execute()

        logger.info(
            "supabase_connected",
            status="success"
        )

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise ConnectionError(f"Failed to connect to Supabase: {e}") from e


def get_admin_client() -> Optional[Client]:
    """
    Get Supabase client with service role key (admin access).

    Only available if SUPABASE_SERVICE_KEY is configured.

    Returns:
        Client: Admin Supabase client, or None if not configured
    """
    if not (settings.supabase_url and settings.supabase_service_key):
        logger.warning("admin_client_not_configured")
        return None

    try:
        return create_client(
            settings.supabase_url,
            settings.supabase_service_key
        )
    except Exception as e:
        logger.error(
            "admin_client_failed",
            error=str(e)
        )
        return None


# Convenience alias
db = get_supabase_client


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()

        items = client.table("items").select("id", count="exact").execute()
        machines = client.table("machines").select("id", count="exact").execute()

        return {
            "status": "healthy",
            "items_count": items.count,
            "machines_count": machines.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


def reset_connection():
    """
    Reset the cached database connection.

    Call this if connection becomes stale or after config changes.
    """
    get_supabase_client.cache_clear()
    logger.info("database_connection_reset")
