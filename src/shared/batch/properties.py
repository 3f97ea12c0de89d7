"""Flat key-value property space that survives across invocations.

The checkpoint, continuation trigger id, execution window and run lease of
every job live here under keys namespaced by the job name. Writes are
last-write-wins and there is no transaction across keys.

Usage:
    store = JsonFilePropertyStore("./state/properties.json")
    store.set("ImageGenerationLastProcessedUnitId", "123")
    store.get("ImageGenerationLastProcessedUnitId")  # -> "123"
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from ..db import get_supabase_client

logger = logging.getLogger(__name__)


class PropertyStore(ABC):
    """Minimal string-to-string property space."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Deleting an absent key is a no-op."""


class InMemoryPropertyStore(PropertyStore):
    """Process-local store used by tests and local runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


class JsonFilePropertyStore(PropertyStore):
    """Properties persisted to a JSON file with atomic writes.

    Every mutation rewrites the file through a temporary sibling followed by
    a rename, so a process killed mid-write leaves the previous version.
    """

    def __init__(self, filepath: str | Path):
        self.filepath = Path(filepath)
        self._lock = threading.Lock()
        self._data: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.filepath.exists():
            return
        try:
            with open(self.filepath, "r", encoding="utf-8") as handle:
                loaded = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to load properties from %s: %s", self.filepath, exc)
            return
        properties = loaded.get("properties", {}) if isinstance(loaded, dict) else {}
        self._data = {str(key): str(value) for key, value in properties.items()}
        logger.debug("Loaded %d properties from %s", len(self._data), self.filepath)

    def _flush(self) -> None:
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.filepath.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as handle:
            json.dump(
                {
                    "last_updated": datetime.now(timezone.utc).isoformat(),
                    "properties": self._data,
                },
                handle,
                indent=2,
            )
        temp_path.replace(self.filepath)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()


class SupabasePropertyStore(PropertyStore):
    """Properties stored as rows of a Supabase table.

    Expected table::

        create table job_properties (
            key text primary key,
            value text not null,
            updated_at timestamptz not null default now()
        );
    """

    TABLE_NAME = "job_properties"

    def __init__(self, client=None, table_name: Optional[str] = None):
        self._client = client
        self.table_name = table_name or self.TABLE_NAME

    @property
    def client(self):
        """Lazy-load Supabase client."""
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def get(self, key: str) -> Optional[str]:
        response = (
            self.client.table(self.table_name)
            .select("value")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return rows[0].get("value")

    def set(self, key: str, value: str) -> None:
        record = {
            "key": key,
            "value": str(value),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        response = self.client.table(self.table_name).upsert(record).execute()
        if not getattr(response, "data", None):
            raise RuntimeError(f"Failed to store property {key}")

    def delete(self, key: str) -> None:
        self.client.table(self.table_name).delete().eq("key", key).execute()


def create_property_store(backend: str, *, path: Optional[str] = None, table: Optional[str] = None) -> PropertyStore:
    """Build a property store for the configured backend name."""

    backend = (backend or "memory").lower()
    if backend == "memory":
        return InMemoryPropertyStore()
    if backend == "file":
        return JsonFilePropertyStore(path or "./state/job_properties.json")
    if backend == "supabase":
        return SupabasePropertyStore(table_name=table)
    raise ValueError(f"Unsupported property store backend: {backend}")
