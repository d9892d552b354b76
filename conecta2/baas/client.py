"""
Factory for the remote data client.

``BAAS_MODE=supabase`` returns the HTTP client for the hosted project;
``BAAS_MODE=local`` returns the SQLite emulation.  ``get_client`` is the
process-wide instance and the FastAPI dependency every router uses.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from conecta2.baas.local import LocalClient
from conecta2.baas.supabase import SupabaseClient
from conecta2.config import Settings, get_settings
from conecta2.database import make_engine

logger = logging.getLogger(__name__)

BaasClient = SupabaseClient | LocalClient


def create_client(settings: Settings | None = None) -> BaasClient:
    settings = settings or get_settings()
    mode = settings.BAAS_MODE.strip().lower()
    if mode == "local":
        logger.info("BaaS mode: local (%s)", settings.LOCAL_DATABASE_URL)
        return LocalClient(make_engine(settings.LOCAL_DATABASE_URL), settings.LOCAL_STORAGE_DIR)
    if mode == "supabase":
        logger.info("BaaS mode: supabase (%s)", settings.SUPABASE_URL)
        return SupabaseClient(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            settings.SUPABASE_SERVICE_ROLE_KEY,
        )
    raise ValueError(f"BAAS_MODE no soportado: {settings.BAAS_MODE!r} (use 'supabase' o 'local')")


@lru_cache
def get_client() -> BaasClient:
    return create_client()
