# ---
# File: statuspage/db.py
# Purpose: Builds the Store the application runs on. The Prisma adapter is
#          imported lazily so the memory backend works without a generated
#          Prisma client.
# ---

import logging

from statuspage import config
from statuspage.persistence.base import Store
from statuspage.persistence.memory_store import MemoryStore

logger = logging.getLogger(__name__)


def create_store(backend: str = None) -> Store:
    backend = (backend or config.DATABASE_BACKEND).lower()
    if backend == "memory":
        logger.info("[STORE] Using in-memory store")
        return MemoryStore()
    if backend == "prisma":
        from statuspage.persistence.prisma_store import PrismaStore

        logger.info("[STORE] Using Prisma store")
        return PrismaStore()
    raise ValueError(f"Unknown DATABASE_BACKEND '{backend}' (expected 'prisma' or 'memory')")
