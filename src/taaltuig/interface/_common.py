"""Shared helpers for CLI commands."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from taaltuig.application.config import AppConfig, resolve_config
from taaltuig.application.factory import create_store
from taaltuig.application.review_service import ReviewService


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    """Resolve config with CLI overrides; unset (None) options fall through."""
    return resolve_config(overrides)


@asynccontextmanager
async def open_service(config: AppConfig) -> AsyncIterator[ReviewService]:
    """Open the configured store for the duration of one command."""
    with create_store(config) as store:
        yield ReviewService(store=store, settings=store, history=store)
