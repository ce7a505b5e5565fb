"""
Process-lifetime resource handle.

Built once when a process starts (API lifespan, worker main) and passed to
whatever needs it. A cold start simply builds a new one.
"""

import logging
from dataclasses import dataclass

import redis
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from starter_core.db import create_db_engine, create_sessionmaker
from starter_core.redis import create_redis_client
from starter_core.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class Resources:
    """
    Shared handles for one process.

    Attributes:
        settings: Settings the handles were built from
        engine: SQLAlchemy engine (connection pool)
        session_factory: sessionmaker bound to engine
        redis: Redis client used by the queue transport
    """

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    redis: redis.Redis

    @classmethod
    def create(cls, settings: Settings) -> "Resources":
        engine = create_db_engine(settings.DATABASE_URL)
        resources = cls(
            settings=settings,
            engine=engine,
            session_factory=create_sessionmaker(engine),
            redis=create_redis_client(settings.REDIS_URL),
        )
        logger.info(
            "Resources initialised",
            extra={"environment": settings.ENVIRONMENT, "queue_backend": settings.QUEUE_BACKEND},
        )
        return resources

    def close(self) -> None:
        """Release pooled connections on shutdown."""
        self.engine.dispose()
        self.redis.close()
