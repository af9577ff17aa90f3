"""In-memory stand-ins for the Supabase storage and table clients."""

import copy
import time
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest

from pizzeria_media.config import RetryOptions, Settings
from pizzeria_media.core.database_ops import CatalogWriter
from pizzeria_media.core.storage_ops import StorageGateway
from pizzeria_media.services import UploadOrchestrator

BASE_URL = "https://example.supabase.co"
MB = 1024 * 1024
PNG_HEADER = b"\x89PNG\r\n\x1a\n"
DEFAULT_BUCKETS = ("gallery", "admin-uploads", "uploads", "specialties")


def png_bytes(size: int) -> bytes:
    return PNG_HEADER + b"\0" * max(0, size - len(PNG_HEADER))


class FakeStorageError(Exception):
    """Mimics the error raised by the Supabase storage client."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class FakeBucketApi:
    def __init__(self, storage: "FakeStorage", bucket: str):
        self._storage = storage
        self._bucket = bucket

    def upload(self, path, file, file_options=None):
        self._storage.upload_calls.append((self._bucket, path))
        if self._storage.upload_delay:
            time.sleep(self._storage.upload_delay)
        if self._storage.upload_failures:
            raise self._storage.upload_failures.pop(0)
        if self._storage.upload_error is not None:
            raise self._storage.upload_error
        self._storage.objects[(self._bucket, path)] = (bytes(file), dict(file_options or {}))
        return SimpleNamespace(path=path, full_path=f"{self._bucket}/{path}")

    def remove(self, paths):
        self._storage.remove_calls.append((self._bucket, list(paths)))
        if self._storage.remove_error is not None:
            raise self._storage.remove_error
        for path in paths:
            self._storage.objects.pop((self._bucket, path), None)
        return []

    def list(self, path=None):
        prefix = path or ""
        return [
            {"name": key[1][len(prefix):].lstrip("/")}
            for key in self._storage.objects
            if key[0] == self._bucket and key[1].startswith(prefix)
        ]


class FakeStorage:
    def __init__(self, buckets=DEFAULT_BUCKETS):
        self.buckets = list(buckets)
        self.objects: Dict[Tuple[str, str], Tuple[bytes, Dict[str, Any]]] = {}
        self.upload_calls: List[Tuple[str, str]] = []
        self.remove_calls: List[Tuple[str, List[str]]] = []
        self.upload_failures: List[Exception] = []
        self.upload_error: Optional[Exception] = None
        self.upload_delay = 0.0
        self.remove_error: Optional[Exception] = None
        self.list_buckets_error: Optional[Exception] = None
        self.list_buckets_calls = 0

    def from_(self, bucket: str) -> FakeBucketApi:
        return FakeBucketApi(self, bucket)

    def list_buckets(self):
        self.list_buckets_calls += 1
        if self.list_buckets_error is not None:
            raise self.list_buckets_error
        return [SimpleNamespace(id=name, name=name) for name in self.buckets]


class FakeQuery:
    def __init__(self, db: "FakeDatabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._row: Optional[Dict[str, Any]] = None
        self._filters: List[Tuple[str, Any]] = []
        self._limit: Optional[int] = None

    def insert(self, row):
        self._op = "insert"
        self._row = row
        return self

    def delete(self):
        self._op = "delete"
        return self

    def select(self, *columns, **kwargs):
        self._op = "select"
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row):
        return all(row.get(column) == value for column, value in self._filters)

    def execute(self):
        rows = self._db.rows.setdefault(self._table, [])
        if self._op == "insert":
            self._db.insert_calls.append(self._table)
            if self._db.insert_failures:
                raise self._db.insert_failures.pop(0)
            if self._db.insert_error is not None:
                raise self._db.insert_error
            rows.append(copy.deepcopy(self._row))
            return SimpleNamespace(data=[copy.deepcopy(self._row)], count=None)
        if self._op == "delete":
            self._db.delete_calls.append((self._table, list(self._filters)))
            if self._db.delete_error is not None:
                raise self._db.delete_error
            kept = [row for row in rows if not self._matches(row)]
            removed = [row for row in rows if self._matches(row)]
            self._db.rows[self._table] = kept
            return SimpleNamespace(data=removed, count=None)
        found = [row for row in rows if self._matches(row)]
        if self._limit is not None:
            found = found[: self._limit]
        return SimpleNamespace(data=found, count=len(found))


class FakeDatabase:
    def __init__(self):
        self.rows: Dict[str, List[Dict[str, Any]]] = {}
        self.insert_calls: List[str] = []
        self.delete_calls: List[Tuple[str, List[Tuple[str, Any]]]] = []
        self.insert_failures: List[Exception] = []
        self.insert_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None


class FakeSupabaseClient:
    def __init__(self, buckets=DEFAULT_BUCKETS):
        self.storage = FakeStorage(buckets)
        self.db = FakeDatabase()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.db, name)


class RecordingSleep:
    """Async sleep replacement that records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def supabase_client():
    return FakeSupabaseClient()


@pytest.fixture
def settings():
    return Settings(
        supabase_url=BASE_URL,
        supabase_key="service-key",
        operation_timeout=5.0,
        retry=RetryOptions(),
    )


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def gateway(supabase_client, settings):
    return StorageGateway(
        supabase_client, BASE_URL, timeout=settings.operation_timeout
    )


@pytest.fixture
def catalog(supabase_client, settings):
    return CatalogWriter(supabase_client, timeout=settings.operation_timeout)


@pytest.fixture
def orchestrator(gateway, catalog, settings, recording_sleep):
    return UploadOrchestrator(gateway, catalog, settings, sleep=recording_sleep)
