import os
import time
import uuid

from werkzeug.utils import secure_filename

BUCKETS = ("videos", "covers", "avatars")
CHUNK_SIZE = 64 * 1024


class FileTooLarge(Exception):
    pass


def owner_prefix(user) -> str:
    return f"{user.id}_"


def unique_object_name(filename: str, prefix: str = "") -> str:
    safe = secure_filename(filename or "") or "upload"
    return f"{prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex}_{safe}"


class LocalObjectStorage:
    """Bucket/object layout on the local filesystem: ``<root>/<bucket>/<name>``."""

    def __init__(self, root: str, public_url: str = "/media"):
        self.root = root
        self.public_base = public_url.rstrip("/")

    def _path(self, bucket: str, name: str) -> str:
        if bucket not in BUCKETS:
            raise ValueError(f"Unknown bucket {bucket!r}")
        if not name or name != secure_filename(name):
            raise ValueError("Invalid object name")
        return os.path.join(self.root, bucket, name)

    def bucket_dir(self, bucket: str) -> str:
        if bucket not in BUCKETS:
            raise ValueError(f"Unknown bucket {bucket!r}")
        return os.path.join(self.root, bucket)

    def save(self, bucket: str, name: str, stream, max_bytes: int | None = None) -> int:
        """Copy ``stream`` into the bucket and return the number of bytes written."""
        path = self._path(bucket, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)

        written = 0
        try:
            with open(path, "xb") as fh:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if max_bytes is not None and written > max_bytes:
                        raise FileTooLarge(name)
                    fh.write(chunk)
        except FileTooLarge:
            os.remove(path)
            raise
        return written

    def exists(self, bucket: str, name: str) -> bool:
        try:
            return os.path.isfile(self._path(bucket, name))
        except ValueError:
            return False

    def remove(self, bucket: str, name: str) -> bool:
        try:
            os.remove(self._path(bucket, name))
        except (FileNotFoundError, ValueError):
            return False
        return True

    def public_url(self, bucket: str, name: str | None) -> str | None:
        if not name:
            return None
        if name.startswith(("http://", "https://")):
            return name
        return f"{self.public_base}/{bucket}/{name}"
