"""Supabase client for the order store."""

import logging
from functools import lru_cache
from supabase import create_client, Client
from ..config import settings


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logging.info("Supabase credentials not configured (missing URL or key); using in-memory order store")
        return None

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
        return client
    except Exception as e:
        logging.error(f"Failed to create Supabase client: {e}")
        return None


# Expected table layout:
#
# create table orders (
#     id text primary key,
#     provider_order_id text,
#     status text not null,
#     payload jsonb not null,
#     updated_at timestamptz default now()
# );
# create index orders_provider_order_id_idx on orders (provider_order_id);
