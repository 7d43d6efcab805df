import copy
import threading
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import DocumentNotFound, DocumentStore, DuplicateKey, PreconditionFailed


class MemoryDocumentStore(DocumentStore):
    """In-process store used for development and tests.

    A single lock serializes every call, which makes ``create_unique`` and
    conditional updates atomic across threads.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._unique_keys: Dict[Tuple[str, Tuple[str, ...]], set] = {}

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def create(self, collection, fields, doc_id=None):
        with self._lock:
            docs = self._collection(collection)
            doc_id = doc_id or uuid.uuid4().hex
            if doc_id in docs:
                raise DuplicateKey(collection, {"id": doc_id})
            doc = copy.deepcopy(fields)
            doc["id"] = doc_id
            docs[doc_id] = doc
            return copy.deepcopy(doc)

    def create_unique(self, collection, natural_key: Sequence[str], fields):
        key_fields = tuple(natural_key)
        key = tuple(fields[name] for name in key_fields)
        with self._lock:
            taken = self._unique_keys.setdefault((collection, key_fields), set())
            if key in taken:
                raise DuplicateKey(collection, dict(zip(key_fields, key)))
            doc = self.create(collection, fields)
            taken.add(key)
            return doc

    def get(self, collection, doc_id):
        with self._lock:
            try:
                return copy.deepcopy(self._collection(collection)[doc_id])
            except KeyError:
                raise DocumentNotFound(collection, doc_id)

    def list(self, collection, **filters) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self._collection(collection).values()
                if all(doc.get(name) == value for name, value in filters.items())
            ]

    def update(self, collection, doc_id, fields, expected: Optional[Dict[str, Any]] = None):
        with self._lock:
            docs = self._collection(collection)
            if doc_id not in docs:
                raise DocumentNotFound(collection, doc_id)
            doc = docs[doc_id]
            if expected and any(doc.get(name) != value for name, value in expected.items()):
                raise PreconditionFailed(collection, doc_id, expected)
            doc.update(copy.deepcopy(fields))
            doc["id"] = doc_id
            return copy.deepcopy(doc)

    def delete(self, collection, doc_id):
        with self._lock:
            try:
                doc = self._collection(collection).pop(doc_id)
            except KeyError:
                raise DocumentNotFound(collection, doc_id)
            for (name, key_fields), taken in self._unique_keys.items():
                if name == collection:
                    taken.discard(tuple(doc.get(field) for field in key_fields))
