import enum
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import sessionmaker

from .. import models
from ..errors import StoreUnavailable
from .base import DocumentNotFound, DocumentStore, DuplicateKey, PreconditionFailed

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "elections": models.Election,
    "candidates": models.Candidate,
    "votes": models.Vote,
    "facilities": models.Facility,
    "bookings": models.BookingRequest,
}


def _plain(value):
    # SQLite hands back naive datetimes; everything is stored as UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    if isinstance(value, enum.Enum):
        return value.value
    return value


class SqlAlchemyDocumentStore(DocumentStore):
    """Relational adapter: one ORM table per collection.

    Natural-key uniqueness comes from each table's ``UniqueConstraint`` and
    conditional updates are a single ``UPDATE ... WHERE``. Every call runs in
    its own session, so a call either commits completely or not at all.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _model(collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}")

    @staticmethod
    def _to_doc(obj) -> Dict[str, Any]:
        return {column.name: _plain(getattr(obj, column.name)) for column in obj.__table__.columns}

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        except IntegrityError:
            db.rollback()
            raise
        except DBAPIError as exc:
            db.rollback()
            logger.warning("Document store call failed: %s", exc)
            raise StoreUnavailable() from exc
        finally:
            db.close()

    def _insert(self, collection, fields, doc_id, key):
        model = self._model(collection)
        with self._session() as db:
            obj = model(**fields)
            obj.id = doc_id or uuid.uuid4().hex
            db.add(obj)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateKey(collection, key or {"id": obj.id}) from exc
            return self._to_doc(obj)

    def create(self, collection, fields, doc_id=None):
        return self._insert(collection, fields, doc_id, None)

    def create_unique(self, collection, natural_key, fields):
        return self._insert(collection, fields, None, {name: fields[name] for name in natural_key})

    def get(self, collection, doc_id):
        model = self._model(collection)
        with self._session() as db:
            obj = db.get(model, doc_id)
            if obj is None:
                raise DocumentNotFound(collection, doc_id)
            return self._to_doc(obj)

    def list(self, collection, **filters):
        model = self._model(collection)
        with self._session() as db:
            return [self._to_doc(obj) for obj in db.query(model).filter_by(**filters).all()]

    def update(self, collection, doc_id, fields, expected: Optional[Dict[str, Any]] = None):
        model = self._model(collection)
        with self._session() as db:
            query = db.query(model).filter(model.id == doc_id)
            if expected:
                query = query.filter_by(**expected)
            updated = query.update(fields, synchronize_session=False)
            if not updated:
                db.rollback()
                if db.get(model, doc_id) is None:
                    raise DocumentNotFound(collection, doc_id)
                raise PreconditionFailed(collection, doc_id, expected)
            db.commit()
            return self._to_doc(db.get(model, doc_id))

    def delete(self, collection, doc_id):
        model = self._model(collection)
        with self._session() as db:
            obj = db.get(model, doc_id)
            if obj is None:
                raise DocumentNotFound(collection, doc_id)
            db.delete(obj)
            db.commit()
