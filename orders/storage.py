"""
Filesystem object storage.

Objects live under <root>/<bucket>/<path> and are served by the web app at
<public_base_url>/storage/<bucket>/<path>.
"""
import logging
import re
from pathlib import Path, PurePosixPath

from models.supplier_order import FieldIssue

from .errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")


class ObjectStorage:
    """
    Buckets of files addressed by relative paths.

    Usage:
        storage = ObjectStorage(Path("data/storage"), "http://localhost:8000")
        url = storage.upload("logos", "company-logo.png", data, upsert=True)
    """

    def __init__(self, root: Path, public_base_url: str):
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")

    def upload(self, bucket: str, path: str, data: bytes, upsert: bool = False) -> str:
        """Store data and return its public URL.  Existing objects are only replaced with upsert."""
        target = self._target(bucket, path)
        if target.exists() and not upsert:
            raise ConflictError(f"Object {bucket}/{path} already exists")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("Stored %s/%s (%d bytes)", bucket, self._clean(path), len(data))
        return self.get_public_url(bucket, path)

    def get_public_url(self, bucket: str, path: str) -> str:
        self._check_bucket(bucket)
        return f"{self.public_base_url}/storage/{bucket}/{self._clean(path)}"

    def resolve(self, bucket: str, path: str) -> Path:
        """Filesystem path of an existing object."""
        target = self._target(bucket, path)
        if not target.is_file():
            raise NotFoundError(f"No object {bucket}/{path}")
        return target

    # ------------------------------------------------------------------

    @staticmethod
    def _check_bucket(bucket: str) -> None:
        if not _BUCKET_RE.match(bucket):
            raise ValidationError([FieldIssue(field="bucket", message=f"Invalid bucket name {bucket!r}")])

    @staticmethod
    def _clean(path: str) -> str:
        parts = PurePosixPath(path.lstrip("/")).parts
        if not parts or any(p in ("..", ".") for p in parts):
            raise ValidationError([FieldIssue(field="path", message=f"Invalid object path {path!r}")])
        return "/".join(parts)

    def _target(self, bucket: str, path: str) -> Path:
        self._check_bucket(bucket)
        return self.root / bucket / self._clean(path)
