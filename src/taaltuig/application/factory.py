"""
Store Factory
Centralizes the logic for selecting the store adapter.
"""

import logging

from taaltuig.application.config import AppConfig
from taaltuig.infrastructure.adapters.json_store import JsonFileStore
from taaltuig.infrastructure.adapters.memory_store import MemoryStore

logger = logging.getLogger(__name__)


def create_store(config: AppConfig) -> MemoryStore:
    """
    Returns a store handle for the configured backend.

    The caller owns the lifecycle: use it as a context manager or call
    ``open()``/``close()`` explicitly.
    """
    if config.data_file is not None:
        logger.debug(f"Store: JSON file {config.data_file}")
        return JsonFileStore(config.data_file)

    logger.debug("Store: in-memory")
    return MemoryStore()
