"""
Configuration for the metadata facade.

Values come from the environment (optionally a .env file):

- METAFACADE_DATABASE_URL         "memory://" for the in-memory store, otherwise
                                  any SQLAlchemy URL (e.g. "sqlite:///meta.db")
- METAFACADE_LOG_LEVEL            logging level name, default "INFO"
- METAFACADE_WARN_AMBIGUOUS_META  "0"/"false" silences the warnings for
                                  missing or "meta" keys
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from metafacade.core.metastore import MetaStore
from metafacade.core.storage import Base, InMemoryMetaStorage, MetaStorage, SqlMetaStorage

MEMORY_URL = "memory://"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class FacadeConfig(BaseModel):
    """Settings for storage, logging and developer warnings."""
    database_url: str = Field(default=MEMORY_URL, description="Metadata store location")
    log_level: str = Field(default="INFO", description="Root log level")
    warn_ambiguous_meta: bool = Field(default=True, description="Warn on missing or 'meta' keys")

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "FacadeConfig":
        if load_env_file:
            load_dotenv()
        warn = os.getenv("METAFACADE_WARN_AMBIGUOUS_META", "true").strip().lower()
        return cls(
            database_url=os.getenv("METAFACADE_DATABASE_URL", MEMORY_URL),
            log_level=os.getenv("METAFACADE_LOG_LEVEL", "INFO").upper(),
            warn_ambiguous_meta=warn not in ("0", "false", "no", "off"),
        )


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_meta_storage(config: FacadeConfig) -> MetaStorage:
    """In-memory storage for memory://, SQL storage (tables created) for anything else."""
    if config.database_url == MEMORY_URL:
        return InMemoryMetaStorage()
    engine = create_engine(config.database_url)
    Base.metadata.create_all(engine)
    return SqlMetaStorage(session_factory=sessionmaker(bind=engine))


def configure(config: Optional[FacadeConfig] = None) -> FacadeConfig:
    """Apply a configuration (the environment's by default) to logging and the MetaStore."""
    config = config or FacadeConfig.from_env()
    setup_logging(config.log_level)
    MetaStore.use_storage(build_meta_storage(config))
    MetaStore.set_ambiguous_key_warnings(config.warn_ambiguous_meta)
    return config
