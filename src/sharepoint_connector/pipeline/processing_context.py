"""State threaded through the steps of one pipeline run."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse

from sharepoint_connector.integration.domain.drive_item import DriveItem


class PipelineStepName(str, Enum):
    TOKEN_VALIDATION = "token-validation"
    CONTENT_FETCHING = "content-fetching"
    CONTENT_REGISTRATION = "content-registration"
    STORAGE_UPLOAD = "storage-upload"
    INGESTION_FINALIZATION = "ingestion-finalization"


def site_root_url(web_url: Optional[str]) -> Optional[str]:
    """Reduce an item URL to its site root, e.g. ``https://host/sites/finance``."""
    if not web_url:
        return None
    parsed = urlparse(web_url)
    if not parsed.scheme or not parsed.netloc:
        return None
    segments = [segment for segment in parsed.path.split("/") if segment]
    if len(segments) >= 2 and segments[0] == "sites":
        return f"{parsed.scheme}://{parsed.netloc}/sites/{segments[1]}"
    return f"{parsed.scheme}://{parsed.netloc}"


def _resolve_id(metadata: dict, key: str, field_name: str) -> Optional[str]:
    if metadata.get(key):
        return metadata[key]
    parent_reference = metadata.get("parent_reference") or {}
    if parent_reference.get(key):
        return parent_reference[key]
    list_item = metadata.get("list_item") or {}
    fields = list_item.get("fields") or {}
    return fields.get(field_name) or None


def resolve_drive_id(metadata: dict) -> Optional[str]:
    """Find the drive id on the item, its parent reference, or its list item fields."""
    return _resolve_id(metadata, "drive_id", "driveId")


def resolve_site_id(metadata: dict) -> Optional[str]:
    return _resolve_id(metadata, "site_id", "siteId")


@dataclass
class ProcessingContext:
    correlation_id: str
    file_id: str
    file_name: str
    file_size: int
    site_url: str
    library_name: str
    download_url: str
    start_time: datetime
    upload_url: Optional[str] = None
    unique_content_id: Optional[str] = None
    content_buffer: Optional[bytes] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_drive_item(cls, item: DriveItem) -> ProcessingContext:
        metadata: dict[str, Any] = item.model_dump(exclude_none=True)
        metadata.update(
            {
                "mime_type": item.mime_type,
                "is_folder": item.is_folder,
                "list_item_fields": item.list_item.fields if item.list_item else {},
                "last_modified_date_time": item.last_modified_date_time,
            }
        )
        # Unresolved ids stay absent so drive lookups fall through to the list item fields
        for key, value in (("drive_id", item.drive_id), ("site_id", item.site_id)):
            if value:
                metadata[key] = value
        return cls(
            correlation_id=str(uuid.uuid4()),
            file_id=item.id,
            file_name=item.name,
            file_size=item.size or 0,
            site_url=site_root_url(item.web_url) or item.site_id or "",
            library_name=item.drive_id or "",
            download_url=item.web_url or "",
            start_time=datetime.now(timezone.utc),
            metadata=metadata,
        )

    def release_content(self) -> None:
        self.content_buffer = None


@dataclass(frozen=True)
class PipelineResult:
    success: bool
    context: ProcessingContext
    completed_steps: tuple[str, ...]
    total_duration: float
    error: Optional[BaseException] = None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None
