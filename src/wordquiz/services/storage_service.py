"""Namespaced key-value persistence with graceful degradation."""
import json
import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from wordquiz.config import settings
from wordquiz.exceptions import StorageUnavailableError
from wordquiz.models.base import create_db_engine, create_session_factory, init_db
from wordquiz.models.models import StoredItem
from wordquiz.monitoring import storage_errors

logger = logging.getLogger(__name__)

PROBE_KEY = "storage_test"
PROBE_VALUE = "test"


def format_bytes(size: int) -> str:
    """Format a byte count for display."""
    if size == 0:
        return "0 Bytes"
    k = 1024
    units = ["Bytes", "KB", "MB"]
    i = min(int(math.floor(math.log(size, k))), len(units) - 1)
    value = round(size / math.pow(k, i), 2)
    return f"{value:g} {units[i]}"


class PersistentStore:
    """JSON values under a fixed key prefix, stored in a SQL table.

    The storage medium is probed on first use. If the probe fails the store
    turns into a no-op: writes report failure and reads return the caller's
    default, so the game stays playable in memory.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        prefix: Optional[str] = None,
        engine: Optional[Engine] = None,
    ):
        """Initialize the store for a database URL or an existing engine."""
        self.prefix = prefix or settings.storage.prefix
        self.engine = engine or create_db_engine(url or settings.storage.url, echo=settings.storage.echo)
        self.session_factory: sessionmaker = create_session_factory(self.engine)
        self._available: Optional[bool] = None

    @property
    def available(self) -> bool:
        """Whether the storage medium passed its availability probe."""
        if self._available is None:
            try:
                self._probe()
                self._available = True
            except StorageUnavailableError as e:
                logger.warning(f"Storage not available, progress will not be saved: {e}")
                storage_errors.labels(operation="probe").inc()
                self._available = False
        return self._available

    def _probe(self) -> None:
        """Create the table and round-trip a test value."""
        try:
            init_db(self.engine)
            with self.session_factory() as db:
                db.merge(StoredItem(key=PROBE_KEY, value=PROBE_VALUE))
                db.commit()
                item = db.get(StoredItem, PROBE_KEY)
                retrieved = item.value if item else None
                if item:
                    db.delete(item)
                    db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailableError(str(e)) from e
        if retrieved != PROBE_VALUE:
            raise StorageUnavailableError("probe value did not round-trip")

    def full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def set(self, key: str, value: Any) -> bool:
        """Store a JSON-serializable value. Returns False if it was not saved."""
        if not self.available:
            logger.debug(f"Storage not available, cannot save: {key}")
            return False

        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Value for {key} is not JSON serializable: {e}")
            return False

        try:
            with self.session_factory() as db:
                db.merge(StoredItem(key=self.full_key(key), value=serialized))
                db.commit()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to save data for key {key}: {e}")
            storage_errors.labels(operation="set").inc()
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or default when absent, unreadable or corrupt."""
        if not self.available:
            return default

        try:
            with self.session_factory() as db:
                item = db.get(StoredItem, self.full_key(key))
                raw = item.value if item else None
        except SQLAlchemyError as e:
            logger.warning(f"Failed to retrieve data for key {key}: {e}")
            storage_errors.labels(operation="get").inc()
            return default

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Stored value for key {key} is not valid JSON, using default")
            return default

    def remove(self, key: str) -> bool:
        """Delete one key. Missing keys count as removed."""
        if not self.available:
            return False

        try:
            with self.session_factory() as db:
                item = db.get(StoredItem, self.full_key(key))
                if item:
                    db.delete(item)
                    db.commit()
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to remove key {key}: {e}")
            storage_errors.labels(operation="remove").inc()
            return False

    def _prefixed_items(self) -> list[StoredItem]:
        with self.session_factory() as db:
            return (
                db.query(StoredItem)
                .filter(StoredItem.key.startswith(self.prefix, autoescape=True))
                .order_by(StoredItem.key)
                .all()
            )

    def export_all(self) -> Dict[str, Any]:
        """Return every namespaced value keyed by its short key."""
        data: Dict[str, Any] = {}
        if not self.available:
            return data

        try:
            items = self._prefixed_items()
        except SQLAlchemyError as e:
            logger.error(f"Failed to export data: {e}")
            storage_errors.labels(operation="export").inc()
            return data

        for item in items:
            short_key = item.key[len(self.prefix):]
            try:
                data[short_key] = json.loads(item.value)
            except ValueError:
                data[short_key] = item.value
        return data

    def import_all(self, data: Any) -> bool:
        """Write every entry of a mapping. Each key is saved independently."""
        if not self.available or not isinstance(data, dict):
            return False

        results = [self.set(key, value) for key, value in data.items()]
        if not all(results):
            logger.error(f"Failed to import {results.count(False)} of {len(results)} keys")
            return False
        return True

    def clear_all(self) -> bool:
        """Remove every key under the prefix."""
        if not self.available:
            return False

        try:
            with self.session_factory() as db:
                removed = (
                    db.query(StoredItem)
                    .filter(StoredItem.key.startswith(self.prefix, autoescape=True))
                    .delete(synchronize_session=False)
                )
                db.commit()
            logger.info(f"Cleared {removed} stored keys")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to clear storage: {e}")
            storage_errors.labels(operation="clear").inc()
            return False

    def size_info(self) -> Dict[str, Any]:
        """Item count and approximate size of the namespaced data."""
        if not self.available:
            return {"available": False}

        try:
            items = self._prefixed_items()
        except SQLAlchemyError as e:
            logger.error(f"Failed to get storage info: {e}")
            storage_errors.labels(operation="size_info").inc()
            return {"available": True, "error": True}

        total_bytes = sum(len((item.key + item.value).encode("utf-8")) for item in items)
        return {
            "available": True,
            "item_count": len(items),
            "total_bytes": total_bytes,
            "total_size_formatted": format_bytes(total_bytes),
        }
