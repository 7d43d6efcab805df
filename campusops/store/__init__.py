from ..config import Settings, settings
from ..database import Base, build_engine, build_session_factory
from .base import DocumentNotFound, DocumentStore, DuplicateKey, PreconditionFailed, StoreError
from .memory import MemoryDocumentStore
from .sql import SqlAlchemyDocumentStore

__all__ = [
    "DocumentNotFound",
    "DocumentStore",
    "DuplicateKey",
    "MemoryDocumentStore",
    "PreconditionFailed",
    "SqlAlchemyDocumentStore",
    "StoreError",
    "create_store",
]


def create_store(config: Settings = settings) -> DocumentStore:
    """Build the store selected by ``STORE_BACKEND``."""
    if config.STORE_BACKEND == "memory":
        return MemoryDocumentStore()

    engine = build_engine(config.SQLALCHEMY_DATABASE_URI, timeout=config.STORE_TIMEOUT_SECONDS)
    # Create all tables
    Base.metadata.create_all(bind=engine)
    return SqlAlchemyDocumentStore(build_session_factory(engine))
