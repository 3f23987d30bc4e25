"""Object storage for uploaded identity documents and resumes."""

import logging
from pathlib import Path

import requests

from accounts.errors import StorageError

logger = logging.getLogger("accounts.storage")


class BlobStorage:
    """Stores blobs under ``bucket/path`` and returns their public URL."""

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        raise NotImplementedError

    def remove(self, bucket: str, path: str) -> None:
        raise NotImplementedError


class SupabaseStorage(BlobStorage):
    """Supabase storage REST API."""

    def __init__(self, url: str, key: str, session: requests.Session = None):
        self.url = url.rstrip("/")
        self.key = key
        self.session = session or requests.Session()

    def _headers(self, content_type: str = None) -> dict:
        headers = {"Authorization": f"Bearer {self.key}", "apikey": self.key}
        if content_type is not None:
            headers["Content-Type"] = content_type
        return headers

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{path}"

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        try:
            response = self.session.post(
                f"{self.url}/storage/v1/object/{bucket}/{path}",
                data=content,
                headers=self._headers(content_type),
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"Upload of {bucket}/{path} failed: {e}") from e
        logger.info(f"Uploaded {bucket}/{path} ({len(content)} bytes)")
        return self.public_url(bucket, path)

    def remove(self, bucket: str, path: str) -> None:
        try:
            response = self.session.delete(
                f"{self.url}/storage/v1/object/{bucket}",
                json={"prefixes": [path]},
                headers=self._headers(),
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"Removal of {bucket}/{path} failed: {e}") from e
        logger.info(f"Removed {bucket}/{path}")


class LocalStorage(BlobStorage):
    """Keeps blobs on the local filesystem, for development setups."""

    def __init__(self, root: Path, base_url: str = "/uploads"):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def upload(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        target = self.root / bucket / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Upload of {bucket}/{path} failed: {e}") from e
        return f"{self.base_url}/{bucket}/{path}"

    def remove(self, bucket: str, path: str) -> None:
        target = self.root / bucket / path
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Removal of {bucket}/{path} failed: {e}") from e
