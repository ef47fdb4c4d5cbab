import os
import logging
import threading
from typing import Optional
from fastapi import HTTPException
from supabase import create_client, Client

logger = logging.getLogger("crisis-api.dependencies")

__all__ = [
    "get_supabase_client",
    "reset_caches_for_testing",
]

# Cliente cacheado e lock para inicialização thread-safe
_cached_client: Optional[Client] = None
_client_initialization_lock = threading.Lock()

# Heurística simples de sanidade da key
MIN_ANON_KEY_LENGTH = 100


def reset_caches_for_testing():
    """
    Reseta o cliente cacheado em testes.
    NÃO usar em código de produção.
    """
    global _cached_client
    _cached_client = None


def get_supabase_client() -> Client:
    """
    Cliente Supabase com a chave ANON (RLS aplicado), usado para ler os sinais
    do paciente e gravar as predições de crise.
    Thread-safe com double-checked locking.
    """
    global _cached_client
    if _cached_client is None:
        with _client_initialization_lock:
            if _cached_client is None:  # Double-check
                url = os.getenv("SUPABASE_URL")
                anon_key = os.getenv("SUPABASE_ANON_KEY", "").strip()

                if not url or not anon_key:
                    logger.error("SUPABASE_URL ou SUPABASE_ANON_KEY ausentes.")
                    raise HTTPException(status_code=500, detail="Configuração Supabase incompleta (ANON).")

                if len(anon_key) < MIN_ANON_KEY_LENGTH:
                    logger.error("ANON KEY inválida/truncada (len=%d).", len(anon_key))
                    raise HTTPException(status_code=500, detail="SUPABASE_ANON_KEY inválida ou truncada.")

                logger.info("Inicializando cliente ANON (sync) key=%s...%s", anon_key[:5], anon_key[-5:])
                _cached_client = create_client(url, anon_key)
                logger.debug("Cliente ANON cacheado.")
    return _cached_client
