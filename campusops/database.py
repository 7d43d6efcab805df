from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def build_engine(url: str, timeout: float = 5.0) -> Engine:
    """Create an engine whose calls give up after ``timeout`` seconds."""
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # a single shared connection, or every session sees an empty database
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, connect_args=connect_args)
    return create_engine(url, pool_timeout=timeout, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
