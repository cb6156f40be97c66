"""
Simulation Services Module
External store integrations.
"""

from .memory_store import InMemoryPersistenceService
from .supabase_persistence import SupabasePersistenceService

__all__ = [
    "InMemoryPersistenceService",
    "SupabasePersistenceService",
]
