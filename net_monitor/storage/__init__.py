"""Result store backends."""

from __future__ import annotations

from ..config import AppConfig
from ..interfaces import ResultStore
from .elastic import ElasticResultStore
from .sql import SqlResultStore

BACKENDS = ("elasticsearch", "sqlite")


def create_store(config: AppConfig) -> ResultStore:
    """Instantiate the backend named by ``store.backend``."""
    backend = config.store.backend.lower()
    if backend == "elasticsearch":
        return ElasticResultStore(config.elastic)
    if backend == "sqlite":
        return SqlResultStore(
            config.paths.data_dir / config.store.sqlite_file,
            index_prefix=config.elastic.index_prefix,
        )
    raise ValueError(f"Unknown store backend: {config.store.backend!r}. Available: {list(BACKENDS)}")


__all__ = ["BACKENDS", "ElasticResultStore", "SqlResultStore", "create_store"]
