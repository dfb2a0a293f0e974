"""
Blob storage for receipt files.

``BlobStore`` is the interface the receipt lifecycle depends on; ``LocalBlobStore``
implements it on the local filesystem. Objects are stored under their key in the
container directory, with a JSON sidecar under ``.meta/`` recording content type,
size and sha256.
"""

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Union
from urllib.parse import quote

from .errors import BlobStoreError, ReceiptNotFoundError

logger = logging.getLogger(__name__)

META_DIR = ".meta"


class BlobStore(Protocol):
    """Interface for a container of named binary objects."""

    def upload(self, path: str, data: bytes, content_type: str, upsert: bool = True) -> None:
        """Store ``data`` at ``path``, replacing any existing object when ``upsert``."""
        ...

    def download(self, path: str) -> bytes:
        """Return the bytes at ``path``; raises ``ReceiptNotFoundError`` if absent."""
        ...

    def remove(self, path: str) -> None:
        """Delete the object at ``path``; a missing object is not an error."""
        ...

    def resolve_url(self, path: str) -> str:
        """Retrieval URL for ``path``. Does not check that the object exists."""
        ...


class LocalBlobStore:
    """Filesystem implementation of ``BlobStore``.

    Uploads are written to a temporary file and moved into place with
    ``os.replace``, so readers never see a partially written object. The sidecar is
    written after the object and is advisory: losing it never fails an upload.
    """

    def __init__(self, root: Union[str, Path], base_url: Optional[str] = None, create_dirs: bool = True):
        """Initialize local blob storage.

        Args:
            root: Directory holding the container's objects
            base_url: Public URL prefix for ``resolve_url``; file URIs are used when unset
            create_dirs: Whether to create the directory if it does not exist
        """
        self.root = Path(root)
        self.base_url = base_url.rstrip("/") if base_url else None
        self.logger = logger

        if create_dirs:
            self.root.mkdir(parents=True, exist_ok=True)

    def _object_path(self, key: str) -> Path:
        """Map a key to its file, refusing keys that escape the container."""
        parts = Path(key).parts if key else ()
        if not parts or key.startswith("/") or ".." in parts or parts[0] == META_DIR:
            raise BlobStoreError(f"Invalid object key: {key!r}", path=key)
        return self.root / key

    def _meta_path(self, key: str) -> Path:
        return self.root / META_DIR / f"{key}.json"

    def upload(self, path: str, data: bytes, content_type: str, upsert: bool = True) -> None:
        target = self._object_path(path)
        if not upsert and target.exists():
            raise BlobStoreError(f"Object {path} already exists", path=path)

        sha256 = hashlib.sha256(data).hexdigest()
        meta = {
            "content_type": content_type,
            "size": len(data),
            "sha256": sha256,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(target, data)
        except OSError as e:
            self.logger.error(f"Failed to upload {path}: {str(e)}")
            raise BlobStoreError(f"Failed to upload {path}: {e}", path=path) from e

        self.logger.info(f"Uploaded {path} ({len(data)} bytes, {content_type})")
        self._write_meta(path, meta)

    def _write_meta(self, path: str, meta: dict) -> None:
        """Record sidecar metadata for an object that is already stored.

        The object is the upload; a sidecar that cannot be written is dropped so
        ``content_type`` reports nothing rather than the previous object's type.
        """
        meta_path = self._meta_path(path)
        try:
            meta_path.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write(meta_path, json.dumps(meta).encode("utf-8"))
        except OSError as e:
            self.logger.warning(f"Stored {path} without metadata: {str(e)}")
            try:
                meta_path.unlink(missing_ok=True)
            except OSError:
                self.logger.warning(f"Stale metadata left for {path}")

    def download(self, path: str) -> bytes:
        target = self._object_path(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise ReceiptNotFoundError(path) from e
        except OSError as e:
            self.logger.error(f"Failed to download {path}: {str(e)}")
            raise BlobStoreError(f"Failed to download {path}: {e}", path=path) from e

    def remove(self, path: str) -> None:
        target = self._object_path(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            self.logger.error(f"Failed to remove {path}: {str(e)}")
            raise BlobStoreError(f"Failed to remove {path}: {e}", path=path) from e

        self.logger.info(f"Removed {path}")
        try:
            self._meta_path(path).unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(f"Metadata for removed {path} left behind: {str(e)}")

    def exists(self, path: str) -> bool:
        return self._object_path(path).is_file()

    def content_type(self, path: str) -> Optional[str]:
        """Content type recorded at upload time, if any."""
        try:
            meta = json.loads(self._meta_path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        return meta.get("content_type")

    def resolve_url(self, path: str) -> str:
        if self.base_url:
            return f"{self.base_url}/{quote(path)}"
        return (self.root / path).resolve().as_uri()

    @staticmethod
    def _atomic_write(target: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
