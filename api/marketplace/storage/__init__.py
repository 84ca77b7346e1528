"""Storage backends behind the MarketplaceStorage interface."""
import logging

from marketplace.core.config import Settings
from marketplace.core.database import create_session_factory, engine_from_settings, init_db

from .base import MarketplaceStorage
from .database import DatabaseStorage
from .memory import MemoryStorage

logger = logging.getLogger(__name__)

__all__ = ["MarketplaceStorage", "MemoryStorage", "DatabaseStorage", "create_storage"]


def create_storage(settings: Settings, session_factory=None) -> MarketplaceStorage:
    """Build the backend named by STORAGE_BACKEND and seed fixtures if enabled."""
    from marketplace.core.seed import run_seeds

    backend = settings.STORAGE_BACKEND.lower()
    if backend == "memory":
        storage: MarketplaceStorage = MemoryStorage()
    elif backend == "database":
        if session_factory is None:
            engine = engine_from_settings(settings)
            init_db(engine)
            session_factory = create_session_factory(engine)
        storage = DatabaseStorage(session_factory)
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")

    logger.info(f"Using {backend} storage")
    if settings.SEED_FIXTURES:
        run_seeds(storage, settings)
    return storage
