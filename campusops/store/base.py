"""The document store contract the workflows are written against.

A document is a plain ``dict`` holding an opaque string ``id`` plus its
fields. Stores return copies; mutating a returned document never changes
stored state.
"""
import abc
from typing import Any, Dict, List, Optional, Sequence


class StoreError(Exception):
    """Base class for failures reported by a document store."""


class DocumentNotFound(StoreError):
    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} does not exist")


class DuplicateKey(StoreError):
    def __init__(self, collection: str, key: Dict[str, Any]):
        self.collection = collection
        self.key = key
        super().__init__(f"{collection} already holds a document with {key}")


class PreconditionFailed(StoreError):
    def __init__(self, collection: str, doc_id: str, expected: Dict[str, Any]):
        self.collection = collection
        self.doc_id = doc_id
        self.expected = expected
        super().__init__(f"{collection}/{doc_id} no longer matches {expected}")


class DocumentStore(abc.ABC):
    """Collections of documents with create/get/list/update/delete.

    Implementations raise :class:`campusops.errors.StoreUnavailable` for
    transport or infrastructure failures.
    """

    #: whether ``update(..., expected=...)`` is applied atomically
    supports_conditional_writes = True

    @abc.abstractmethod
    def create(self, collection: str, fields: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
        """Insert a document, generating an id when none is given."""

    @abc.abstractmethod
    def create_unique(self, collection: str, natural_key: Sequence[str], fields: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document unless one with the same natural key exists.

        The insert itself is the atomicity boundary: of several concurrent
        calls with the same key exactly one succeeds, the others raise
        :class:`DuplicateKey`.
        """

    @abc.abstractmethod
    def get(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """Return one document or raise :class:`DocumentNotFound`."""

    @abc.abstractmethod
    def list(self, collection: str, **filters: Any) -> List[Dict[str, Any]]:
        """Return the documents whose fields equal every filter value."""

    @abc.abstractmethod
    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Apply ``fields`` to a document and return the new version.

        With ``expected`` the write only happens while the stored document
        still holds those values; otherwise :class:`PreconditionFailed`.
        """

    @abc.abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document or raise :class:`DocumentNotFound`."""
