"""
Hosted backend interfaces consumed by the form and analytics services.

``FirebaseBackend`` satisfies both; tests swap in in-memory fakes.
"""

from typing import Protocol


class BlobStorage(Protocol):
    async def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key``. Raises UploadError."""
        ...

    async def get_public_url(self, bucket: str, key: str) -> str: ...


class RecordStore(Protocol):
    async def insert(self, table: str, row: dict) -> str:
        """Append ``row`` to ``table`` and return its key. Raises InsertError."""
        ...
