"""Document store adapter.

The room services only see the `DocumentStore` surface: keyed JSON
documents grouped in collections, change subscriptions, and a versioned
read / compare-and-set write pair used to serialize protocol steps.
`SQLDocumentStore` persists documents through Flask-SQLAlchemy.
"""
import copy
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from cyberguard import db
from cyberguard.errors import DocumentNotFound, StoreUnavailable, WriteConflict
from cyberguard.models import Document, generate_document_id

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, Optional[Dict[str, Any]]], None]


class VersionedDocument(NamedTuple):
    id: str
    data: Dict[str, Any]
    version: int


def assign_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    """Set `value` at a dotted `path`, creating intermediate objects."""
    parts = path.split('.')
    target = doc
    for part in parts[:-1]:
        nxt = target.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            target[part] = nxt
        target = nxt
    target[parts[-1]] = value


def read_path(doc: Dict[str, Any], path: str) -> Any:
    target: Any = doc
    for part in path.split('.'):
        if not isinstance(target, dict):
            return None
        target = target.get(part)
    return target


class DocumentStore(ABC):
    """Key-document store as consumed by the room services."""

    def __init__(self):
        self._listeners: Dict[Tuple[str, str], List[ChangeListener]] = {}
        self._listeners_lock = threading.Lock()

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """Return the document body or raise DocumentNotFound."""

    @abstractmethod
    def get_versioned(self, collection: str, doc_id: str) -> VersionedDocument:
        """Return the document body together with its version."""

    @abstractmethod
    def set_document(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Overwrite a document, or merge dotted-path fields into it when `merge` is set."""

    @abstractmethod
    def compare_and_set(self, collection: str, doc_id: str, data: Dict[str, Any], expected_version: int) -> int:
        """Replace the document if its version still equals `expected_version`.

        Returns the new version; raises WriteConflict when another write won.
        """

    @abstractmethod
    def append_to_array_field(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        """Append `value` to the array at `field` unless an equal element is present."""

    @abstractmethod
    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        """Store a new document and return its generated id."""

    @abstractmethod
    def delete_document(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    def list_documents(self, collection: str) -> List[Tuple[str, Dict[str, Any]]]:
        ...

    def subscribe(self, collection: str, doc_id: str, on_change: ChangeListener) -> Callable[[], None]:
        """Call `on_change(doc_id, data)` after every committed change of the document.

        Self-originated writes are delivered too; `data` is None once the
        document is deleted. Returns a callable that cancels the subscription.
        """
        key = (collection, doc_id)
        with self._listeners_lock:
            self._listeners.setdefault(key, []).append(on_change)

        def unsubscribe() -> None:
            with self._listeners_lock:
                listeners = self._listeners.get(key, [])
                if on_change in listeners:
                    listeners.remove(on_change)
                if not listeners:
                    self._listeners.pop(key, None)

        return unsubscribe

    def _notify(self, collection: str, doc_id: str, data: Optional[Dict[str, Any]]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.get((collection, doc_id), []))
        for listener in listeners:
            try:
                listener(doc_id, copy.deepcopy(data))
            except Exception:
                logger.exception(f"[notify-failed] collection={collection} id={doc_id}")


class SQLDocumentStore(DocumentStore):
    """Documents stored as JSON text rows, one table for all collections."""

    def __init__(self, max_append_attempts: int = 5):
        super().__init__()
        self.max_append_attempts = max_append_attempts

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error(f"[store-error] action={action} error={exc}")
            raise StoreUnavailable() from exc

    def _load(self, collection: str, doc_id: str) -> Document:
        row = db.session.get(Document, (collection, doc_id), populate_existing=True)
        if row is None:
            raise DocumentNotFound(f'{collection}/{doc_id} not found')
        return row

    def get_document(self, collection, doc_id):
        return self.get_versioned(collection, doc_id).data

    def get_versioned(self, collection, doc_id):
        with self._guard('get'):
            row = self._load(collection, doc_id)
            return VersionedDocument(row.id, row.to_dict(), row.version)

    def set_document(self, collection, doc_id, data, merge=False):
        with self._guard('set'):
            row = db.session.get(Document, (collection, doc_id), populate_existing=True)
            if merge and row is not None:
                body = row.to_dict()
                for path, value in data.items():
                    assign_path(body, path, value)
            elif merge:
                body = {}
                for path, value in data.items():
                    assign_path(body, path, value)
            else:
                body = dict(data)
            now = time.time()
            if row is None:
                row = Document(collection=collection, id=doc_id, data=json.dumps(body), version=1,
                               created_at=now, updated_at=now)
            else:
                row.data = json.dumps(body)
                row.version = row.version + 1
                row.updated_at = now
            db.session.add(row)
            db.session.commit()
        self._notify(collection, doc_id, body)

    def compare_and_set(self, collection, doc_id, data, expected_version):
        with self._guard('compare_and_set'):
            updated = Document.query.filter_by(
                collection=collection, id=doc_id, version=expected_version
            ).update(
                {'data': json.dumps(data), 'version': expected_version + 1, 'updated_at': time.time()},
                synchronize_session=False,
            )
            if updated != 1:
                db.session.rollback()
                if db.session.get(Document, (collection, doc_id), populate_existing=True) is None:
                    raise DocumentNotFound(f'{collection}/{doc_id} not found')
                raise WriteConflict()
            db.session.commit()
        self._notify(collection, doc_id, data)
        return expected_version + 1

    def append_to_array_field(self, collection, doc_id, field, value):
        for _ in range(self.max_append_attempts):
            current = self.get_versioned(collection, doc_id)
            body = current.data
            items = read_path(body, field)
            items = list(items) if isinstance(items, list) else []
            if value in items:
                return
            items.append(value)
            assign_path(body, field, items)
            try:
                self.compare_and_set(collection, doc_id, body, current.version)
                return
            except WriteConflict:
                logger.info(f"[append-retry] collection={collection} id={doc_id} field={field}")
        raise StoreUnavailable('Too many concurrent updates, please try again')

    def create_document(self, collection, data):
        doc_id = generate_document_id()
        with self._guard('create'):
            now = time.time()
            db.session.add(Document(collection=collection, id=doc_id, data=json.dumps(data), version=1,
                                    created_at=now, updated_at=now))
            db.session.commit()
        self._notify(collection, doc_id, data)
        return doc_id

    def delete_document(self, collection, doc_id):
        with self._guard('delete'):
            row = self._load(collection, doc_id)
            db.session.delete(row)
            db.session.commit()
        self._notify(collection, doc_id, None)

    def list_documents(self, collection):
        with self._guard('list'):
            rows = (Document.query.filter_by(collection=collection)
                    .order_by(Document.created_at)
                    .populate_existing()
                    .all())
            return [(row.id, row.to_dict()) for row in rows]


document_store = SQLDocumentStore()
