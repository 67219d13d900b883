"""
Vastu Samadhan Registration — Firebase hosted backend.

Floor plans go to a Cloud Storage bucket, registrations and analytics
events are pushed to Realtime Database nodes. Requires firebase-admin and
a service account key; without one every write fails with a clear error.
"""

import asyncio
import logging
from urllib.parse import quote

import firebase_admin
from firebase_admin import credentials, db as firebase_db, storage as firebase_storage

from vastu_api.exceptions import InsertError, UploadError

logger = logging.getLogger(__name__)

_initialized = False


def init_firebase(cred_path: str = "", db_url: str = "", storage_bucket: str = "") -> bool:
    """
    Initialize Firebase Admin SDK.

    Args:
        cred_path: Path to the service account JSON key file.
        db_url: Firebase RTDB URL.
        storage_bucket: Default Cloud Storage bucket name.

    Returns True if init succeeded, False otherwise.
    """
    global _initialized

    if _initialized:
        return True

    if not cred_path:
        logger.warning("FIREBASE_CRED_PATH not set — hosted backend disabled")
        return False

    try:
        cred = credentials.Certificate(cred_path)
        firebase_admin.initialize_app(
            cred, {"databaseURL": db_url, "storageBucket": storage_bucket}
        )
        _initialized = True
        logger.info("✅ Firebase Admin SDK initialized")
        return True
    except Exception as e:
        logger.error(f"Firebase init failed: {e}")
        return False


def is_initialized() -> bool:
    """Check if Firebase Admin SDK is initialized."""
    return _initialized


class FirebaseBackend:
    """Blob storage + record store over the Firebase Admin SDK."""

    def __init__(self, make_public: bool = True):
        self.make_public = make_public

    async def _run(self, fn):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, fn)

    # ── Blob storage ────────────────────────────────────

    async def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        if not _initialized:
            raise UploadError("File storage is not configured")

        def _upload():
            blob = firebase_storage.bucket(bucket or None).blob(key)
            blob.upload_from_string(data, content_type=content_type)
            if self.make_public:
                blob.make_public()

        try:
            await self._run(_upload)
        except Exception as e:
            logger.error("Upload of %s to bucket %s failed: %s", key, bucket, e)
            raise UploadError(str(e) or None) from e

        logger.info("Uploaded %s (%d bytes) to %s", key, len(data), bucket)
        return key

    async def get_public_url(self, bucket: str, key: str) -> str:
        if _initialized:
            return firebase_storage.bucket(bucket or None).blob(key).public_url
        return f"https://storage.googleapis.com/{bucket}/{quote(key)}"

    # ── Record store ────────────────────────────────────

    async def insert(self, table: str, row: dict) -> str:
        if not _initialized:
            raise InsertError("Record store is not configured")

        try:
            ref = await self._run(lambda: firebase_db.reference(table).push(row))
        except Exception as e:
            logger.error("Insert into %s failed: %s", table, e)
            raise InsertError(str(e) or None) from e

        logger.debug("Inserted %s/%s", table, ref.key)
        return ref.key


# ── Archive helpers (sync, called from the archiver) ──


def get_records(table: str) -> dict[str, dict]:
    """Fetch every record under ``table`` keyed by push id. Raises on failure."""
    if not _initialized:
        return {}
    snapshot = firebase_db.reference(table).get()
    return snapshot or {}


def delete_record(table: str, key: str) -> bool:
    """Delete one record. Returns True on success, False on failure."""
    if not _initialized:
        return False

    try:
        firebase_db.reference(f"{table}/{key}").delete()
        return True
    except Exception as e:
        logger.error(f"Firebase delete {table}/{key} failed: {e}")
        return False


def backend_status() -> str:
    return "connected" if _initialized else "disconnected"
