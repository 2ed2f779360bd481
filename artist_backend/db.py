"""
Document store abstraction for Firestore and an in-memory test implementation.
"""

from __future__ import annotations

import copy
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Literal, Optional, Protocol

from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from artist_backend.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

ChangeKind = Literal["ADDED", "MODIFIED", "REMOVED"]


@dataclass
class Document:
    id: str
    data: dict

    def as_dict(self) -> dict:
        return {"id": self.id, **self.data}


@dataclass
class DocumentChange:
    kind: ChangeKind
    document: Document


@dataclass
class WriteOp:
    """
    One write inside an atomic batch.

    ``add`` ignores ``doc_id`` and lets the store assign one. ``update``
    accepts dotted field paths (``"ratings.<artist_id>"``).
    """

    kind: Literal["add", "set", "update"]
    collection: str
    data: dict
    doc_id: Optional[str] = None


ChangeCallback = Callable[[List[DocumentChange]], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class DocumentStore(Protocol):
    """Interface for the collection-scoped operations the API needs."""

    def add(self, collection: str, data: dict) -> str:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def where_equal(
        self, collection: str, field_name: str, value: Any, limit: int | None = None
    ) -> list[Document]:
        ...

    def list_page(
        self,
        collection: str,
        *,
        offset: int,
        limit: int,
        order_by: str | None = None,
    ) -> list[Document]:
        """Page through ``collection``; ``order_by=None`` orders by document id."""
        ...

    def stream(self, collection: str) -> list[Document]:
        ...

    def commit(self, writes: list[WriteOp]) -> list[str]:
        ...

    def watch(self, collection: str, callback: ChangeCallback) -> Subscription:
        ...


def _apply_update(target: dict, data: dict) -> None:
    for key, value in data.items():
        parts = key.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value


def _resolve_sentinels(data: dict) -> dict:
    now = datetime.now(timezone.utc)
    return {
        key: (now if value is SERVER_TIMESTAMP else value)
        for key, value in data.items()
    }


@dataclass
class _InMemorySubscription:
    store: "InMemoryDocumentStore"
    collection: str
    callback: ChangeCallback

    def unsubscribe(self) -> None:
        listeners = self.store.listeners.get(self.collection, [])
        if self.callback in listeners:
            listeners.remove(self.callback)


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self.listeners: Dict[str, List[ChangeCallback]] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()
        self.listeners.clear()

    def _collection(self, collection: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def _notify(self, collection: str, kind: ChangeKind, doc_id: str) -> None:
        data = self._collection(collection).get(doc_id, {})
        change = DocumentChange(kind, Document(doc_id, copy.deepcopy(data)))
        for callback in list(self.listeners.get(collection, [])):
            callback([change])

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self._collection(collection)[doc_id] = copy.deepcopy(_resolve_sentinels(data))
        self._notify(collection, "ADDED", doc_id)
        return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        data = self._collection(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        docs = self._collection(collection)
        kind = "MODIFIED" if doc_id in docs else "ADDED"
        docs[doc_id] = copy.deepcopy(_resolve_sentinels(data))
        self._notify(collection, kind, doc_id)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        docs = self._collection(collection)
        if doc_id not in docs:
            raise NotFoundError(f"No document to update: {collection}/{doc_id}")
        _apply_update(docs[doc_id], copy.deepcopy(_resolve_sentinels(data)))
        self._notify(collection, "MODIFIED", doc_id)

    def delete(self, collection: str, doc_id: str) -> None:
        docs = self._collection(collection)
        if doc_id in docs:
            self._notify(collection, "REMOVED", doc_id)
            del docs[doc_id]

    def where_equal(
        self, collection: str, field_name: str, value: Any, limit: int | None = None
    ) -> list[Document]:
        matches = [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
            if field_name in data and data[field_name] == value
        ]
        return matches[:limit] if limit is not None else matches

    def list_page(
        self,
        collection: str,
        *,
        offset: int,
        limit: int,
        order_by: str | None = None,
    ) -> list[Document]:
        items = list(self._collection(collection).items())
        if order_by is None:
            items = sorted(items, key=lambda item: item[0])
        else:
            # Firestore drops documents missing the order_by field; sorted() is
            # stable so equal keys keep insertion order.
            items = [item for item in items if order_by in item[1]]
            items = sorted(items, key=lambda item: item[1][order_by])
        return [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in items[offset : offset + limit]
        ]

    def stream(self, collection: str) -> list[Document]:
        return [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(collection).items()
        ]

    def commit(self, writes: list[WriteOp]) -> list[str]:
        # Validate up front so a failing update leaves nothing half-applied.
        for op in writes:
            if op.kind == "update" and op.doc_id not in self._collection(op.collection):
                raise NotFoundError(
                    f"No document to update: {op.collection}/{op.doc_id}"
                )
        doc_ids = []
        for op in writes:
            if op.kind == "add":
                doc_ids.append(self.add(op.collection, op.data))
            elif op.kind == "set":
                self.set(op.collection, op.doc_id, op.data)
                doc_ids.append(op.doc_id)
            else:
                self.update(op.collection, op.doc_id, op.data)
                doc_ids.append(op.doc_id)
        return doc_ids

    def watch(self, collection: str, callback: ChangeCallback) -> Subscription:
        # Like Firestore, the first delivery reports every existing document.
        existing = [
            DocumentChange("ADDED", doc) for doc in self.stream(collection)
        ]
        if existing:
            callback(existing)
        self.listeners.setdefault(collection, []).append(callback)
        return _InMemorySubscription(self, collection, callback)


@contextmanager
def _upstream(action: str) -> Iterator[None]:
    try:
        yield
    except exceptions.NotFound as e:
        raise NotFoundError(f"Document not found during {action}") from e
    except exceptions.GoogleAPICallError as e:
        logger.error("Firestore %s failed: %s", action, e)
        raise UpstreamError(detail=str(e)) from e


class FirestoreDocumentStore:
    """
    Firestore-backed implementation using the Admin SDK client.
    """

    def __init__(self, client):
        self.client = client

    def add(self, collection: str, data: dict) -> str:
        with _upstream("add"):
            _, doc_ref = self.client.collection(collection).add(data)
        return doc_ref.id

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with _upstream("get"):
            snapshot = self.client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        with _upstream("set"):
            self.client.collection(collection).document(doc_id).set(data)

    def update(self, collection: str, doc_id: str, data: dict) -> None:
        with _upstream("update"):
            self.client.collection(collection).document(doc_id).update(data)

    def delete(self, collection: str, doc_id: str) -> None:
        with _upstream("delete"):
            self.client.collection(collection).document(doc_id).delete()

    def where_equal(
        self, collection: str, field_name: str, value: Any, limit: int | None = None
    ) -> list[Document]:
        query = self.client.collection(collection).where(
            filter=FieldFilter(field_name, "==", value)
        )
        if limit is not None:
            query = query.limit(limit)
        with _upstream("query"):
            return [Document(snap.id, snap.to_dict() or {}) for snap in query.stream()]

    def list_page(
        self,
        collection: str,
        *,
        offset: int,
        limit: int,
        order_by: str | None = None,
    ) -> list[Document]:
        order_field = order_by or FieldPath.document_id()
        query = (
            self.client.collection(collection)
            .order_by(order_field)
            .offset(offset)
            .limit(limit)
        )
        with _upstream("list"):
            return [Document(snap.id, snap.to_dict() or {}) for snap in query.stream()]

    def stream(self, collection: str) -> list[Document]:
        with _upstream("stream"):
            return [
                Document(snap.id, snap.to_dict() or {})
                for snap in self.client.collection(collection).stream()
            ]

    def commit(self, writes: list[WriteOp]) -> list[str]:
        batch = self.client.batch()
        doc_ids = []
        for op in writes:
            col = self.client.collection(op.collection)
            if op.kind == "add":
                doc_ref = col.document()
                batch.set(doc_ref, op.data)
            elif op.kind == "set":
                doc_ref = col.document(op.doc_id)
                batch.set(doc_ref, op.data)
            else:
                doc_ref = col.document(op.doc_id)
                batch.update(doc_ref, op.data)
            doc_ids.append(doc_ref.id)
        with _upstream("batch commit"):
            batch.commit()
        return doc_ids

    def watch(self, collection: str, callback: ChangeCallback) -> Subscription:
        def on_snapshot(col_snapshot, changes, read_time):
            callback(
                [
                    DocumentChange(
                        change.type.name,
                        Document(change.document.id, change.document.to_dict() or {}),
                    )
                    for change in changes
                ]
            )

        # The returned Watch exposes unsubscribe(); callbacks run on a
        # background thread owned by the SDK.
        return self.client.collection(collection).on_snapshot(on_snapshot)
