import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from evote.infrastructure.database import SessionLocal
from evote.infrastructure.models import StoredCollection
from evote.infrastructure.notification_bus import NotificationBus, change_event, notification_bus

logger = logging.getLogger(__name__)

REQUESTS = "requests"
VOTERS = "voters"
CANDIDATES = "candidates"
CONFIG = "config"
ADMINS = "admins"

# Collections stored as a single JSON object rather than a list of records.
OBJECT_COLLECTIONS = {CONFIG}


class CollectionStore:
    """
    Key-based storage of whole JSON collections.

    Every successful write publishes one change event per collection.
    Callers performing read-modify-write cycles hold ``locked(...)`` for the
    collections they touch.
    """

    def __init__(self, session_factory=SessionLocal, bus: Optional[NotificationBus] = notification_bus):
        self.session_factory = session_factory
        self.bus = bus
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.RLock:
        with self._locks_guard:
            if name not in self._locks:
                self._locks[name] = threading.RLock()
            return self._locks[name]

    @contextmanager
    def locked(self, *names: str):
        # Sorted acquisition keeps multi-collection operations deadlock free.
        locks = [self._lock_for(name) for name in sorted(set(names))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    @staticmethod
    def _empty(name: str):
        return {} if name in OBJECT_COLLECTIONS else []

    def read(self, name: str):
        """
        Returns a private copy of the collection.

        A missing, corrupt or unreadable collection reads as empty, so a
        storage failure here cannot be told apart from "no data yet".
        """
        empty = self._empty(name)
        try:
            with self.session_factory() as db:
                row = db.get(StoredCollection, name)
                payload = row.payload if row is not None else empty
        except SQLAlchemyError:
            logger.exception("Error reading collection %s", name)
            return empty
        if not isinstance(payload, type(empty)):
            logger.error("Collection %s is corrupt (%s), treating as empty", name, type(payload).__name__)
            return empty
        return copy.deepcopy(payload)

    def read_records(self, name: str, model) -> list:
        """Reads a list collection as ``model`` instances; any malformed record empties it."""
        records = self.read(name)
        try:
            return [model.model_validate(record) for record in records]
        except ValidationError as e:
            logger.error("Collection %s holds a malformed record, treating as empty: %s", name, e)
            return []

    def read_object(self, name: str, model):
        try:
            return model.model_validate(self.read(name))
        except ValidationError as e:
            logger.error("Collection %s is malformed, treating as empty: %s", name, e)
            return model()

    def write(self, name: str, records) -> bool:
        return self.write_many({name: records})

    def write_many(self, collections: dict) -> bool:
        """Persists all given collections in one transaction, in insertion order."""
        now = datetime.now(timezone.utc)
        try:
            with self.session_factory() as db:
                for name, records in collections.items():
                    payload = copy.deepcopy(records)
                    row = db.get(StoredCollection, name)
                    if row is None:
                        db.add(StoredCollection(name=name, payload=payload, updated_at=now))
                    else:
                        row.payload = payload
                        row.updated_at = now
                    db.flush()
                db.commit()
        except SQLAlchemyError:
            logger.exception("Error writing collections %s", ", ".join(collections))
            return False

        if self.bus is not None:
            for name in collections:
                self.bus.publish(change_event(name))
        return True


collection_store = CollectionStore()
