"""
Academy-scoped document store.

Exposes find / find_one / insert / update / delete over JSON documents with
a small subset of MongoDB filter and update semantics:

- filters: equality on top-level fields, array membership, and {"$in": [...]}
- updates: $set and $unset (dotted paths), $push (with optional $each);
  a plain dict is treated as $set
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import InterfaceError, OperationalError, transaction
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .exceptions import StoreUnavailable
from .models import Document
from .types import canonical_id, new_session_id

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (OperationalError, InterfaceError)


def _retrying() -> Retrying:
    return Retrying(
        stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
        wait=wait_fixed(settings.STORE_RETRY_WAIT_SECONDS),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def _attempt(operation, *args):
    # Each attempt gets its own savepoint so a failed query inside an
    # enclosing atomic block is rolled back before the next attempt.
    with transaction.atomic():
        return operation(*args)


def _field_matches(key: str, actual: Any, expected: Any) -> bool:
    if key == 'id':
        actual = None if actual is None else canonical_id(actual)
        if isinstance(expected, dict) and '$in' in expected:
            expected = {'$in': [canonical_id(v) for v in expected['$in']]}
        elif expected is not None:
            expected = canonical_id(expected)

    if isinstance(expected, dict) and '$in' in expected:
        candidates = expected['$in']
        if isinstance(actual, list):
            return any(item in candidates for item in actual)
        return actual in candidates

    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual

    return actual == expected


def matches(record: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
    """Check a document against a filter."""
    return all(
        _field_matches(key, record.get(key), expected)
        for key, expected in (query or {}).items()
    )


def _set_path(record: Dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split('.')
    target = record
    for part in parents:
        child = target.get(part)
        if not isinstance(child, dict):
            child = {}
            target[part] = child
        target = child
    target[leaf] = value


def _unset_path(record: Dict[str, Any], path: str) -> None:
    *parents, leaf = path.split('.')
    target = record
    for part in parents:
        target = target.get(part)
        if not isinstance(target, dict):
            return
    target.pop(leaf, None)


def apply_update(record: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of record with the update operators applied."""
    if not any(key.startswith('$') for key in update):
        update = {'$set': update}

    unknown = set(update) - {'$set', '$unset', '$push'}
    if unknown:
        raise ValueError(f"Unsupported update operator(s): {', '.join(sorted(unknown))}")

    updated = copy.deepcopy(record)
    for path, value in update.get('$set', {}).items():
        _set_path(updated, path, value)
    for path in update.get('$unset', {}):
        _unset_path(updated, path)
    for name, value in update.get('$push', {}).items():
        items = value['$each'] if isinstance(value, dict) and '$each' in value else [value]
        existing = updated.get(name)
        updated[name] = list(existing or []) + list(items)
    return updated


class DocumentStore:
    """
    One collection of one academy.

    Transient database errors are retried; when retries are exhausted the
    call raises StoreUnavailable.
    """

    def __init__(self, collection: str, academy_id: str):
        if not academy_id:
            raise ValueError("An academy id is required")
        self.collection = collection
        self.academy_id = str(academy_id)

    def __repr__(self):
        return f"DocumentStore({self.collection!r}, {self.academy_id!r})"

    def _call(self, operation, *args):
        try:
            return _retrying()(_attempt, operation, *args)
        except _TRANSIENT_ERRORS as exc:
            logger.error("%r: giving up after %d attempt(s): %s",
                         self, settings.STORE_RETRY_ATTEMPTS, exc)
            raise StoreUnavailable(f"Document store unavailable: {exc}") from exc

    def _queryset(self, query=None):
        queryset = Document.objects.scoped(self.collection, self.academy_id)
        doc_id = (query or {}).get('id')
        if isinstance(doc_id, dict) and '$in' in doc_id:
            queryset = queryset.with_doc_ids(doc_id['$in'])
        elif doc_id is not None:
            queryset = queryset.with_doc_id(doc_id)
        return queryset

    def _matching_documents(self, query) -> List[Document]:
        return [doc for doc in self._queryset(query).order_by('pk') if matches(doc.data, query)]

    def find(self, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._call(lambda: [doc.data for doc in self._matching_documents(query)])

    def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        def _find_one():
            found = self._matching_documents(query)
            return found[0].data if found else None
        return self._call(_find_one)

    def insert_one(self, record: Dict[str, Any]):
        """
        Insert a document and return its id.

        Raises:
            ValueError: If a document with the same id already exists
        """
        data = dict(record)
        if data.get('id') is None:
            data['id'] = new_session_id()
        data['academyId'] = self.academy_id

        def _insert():
            if self._queryset({'id': data['id']}).exists():
                raise ValueError(f"Document {data['id']} already exists in {self.collection}")
            Document.objects.create(
                collection=self.collection,
                academy_id=self.academy_id,
                doc_id=canonical_id(data['id']),
                data=data,
            )
            return data['id']

        return self._call(_insert)

    def insert_many(self, records) -> list:
        return [self.insert_one(record) for record in records]

    def update_one(self, query: Dict[str, Any], update: Dict[str, Any]) -> int:
        """Apply update to the first matching document; return the matched count."""
        def _update():
            found = self._matching_documents(query)
            if not found:
                return 0
            document = found[0]
            document.data = apply_update(document.data, update)
            document.doc_id = canonical_id(document.data.get('id', document.doc_id))
            document.save(update_fields=['data', 'doc_id', 'updated_at'])
            return 1
        return self._call(_update)

    def delete_one(self, query: Dict[str, Any]) -> int:
        def _delete():
            found = self._matching_documents(query)
            if not found:
                return 0
            found[0].delete()
            return 1
        return self._call(_delete)

    def delete_many(self, query: Dict[str, Any]) -> int:
        def _delete():
            found = self._matching_documents(query)
            Document.objects.filter(pk__in=[doc.pk for doc in found]).delete()
            return len(found)
        return self._call(_delete)
