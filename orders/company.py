"""
Company settings: the single row of letterhead data printed on purchase orders.
"""
import logging
from pathlib import PurePosixPath

from models.company import CompanySettings
from models.supplier_order import FieldIssue

from .backend import Backend
from .errors import ValidationError
from .storage import ObjectStorage

logger = logging.getLogger(__name__)

TABLE = "amg_company_settings"
LOGO_BUCKET = "logos"
LOGO_EXTENSIONS = {"png", "jpg", "jpeg"}


class CompanySettingsService:
    def __init__(self, backend: Backend, storage: ObjectStorage):
        self.backend = backend
        self.storage = storage

    def get(self) -> CompanySettings:
        """Stored settings, or defaults when nothing has been saved yet."""
        rows = self.backend.select(TABLE, order=[("id", True)], limit=1).rows
        if not rows:
            return CompanySettings()
        return CompanySettings(**rows[0])

    def save(self, settings: CompanySettings) -> CompanySettings:
        """Insert the settings row on first save, update it afterwards."""
        if not settings.company_name or not settings.company_name.strip():
            raise ValidationError([FieldIssue(field="company_name", message="Company name is required")])
        values = settings.model_dump(exclude={"id"})
        current = self.get()
        if current.id is None:
            [row] = self.backend.insert(TABLE, [values])
        else:
            [row] = self.backend.update(TABLE, values, [("id", "eq", current.id)])
        logger.info("Saved company settings for %s", row["company_name"])
        return CompanySettings(**row)

    def upload_logo(self, filename: str, data: bytes) -> CompanySettings:
        """Store the logo as company-logo.<ext> and point the settings at it."""
        ext = PurePosixPath(filename or "").suffix.lstrip(".").lower()
        if ext not in LOGO_EXTENSIONS:
            raise ValidationError([FieldIssue(
                field="file",
                message=f"Logo must be one of: {', '.join(sorted(LOGO_EXTENSIONS))}",
            )])
        if not data:
            raise ValidationError([FieldIssue(field="file", message="Logo file is empty")])
        url = self.storage.upload(LOGO_BUCKET, f"company-logo.{ext}", data, upsert=True)
        return self.save(self.get().model_copy(update={"logo_url": url}))

