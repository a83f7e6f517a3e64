"""Microsoft Graph drive item as returned by list item / drive item endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GraphModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class FileFacet(GraphModel):
    mime_type: Optional[str] = None


class ItemReference(GraphModel):
    drive_id: Optional[str] = None
    site_id: Optional[str] = None
    path: Optional[str] = None


class ListItem(GraphModel):
    id: Optional[str] = None
    fields: dict[str, Any] = Field(default_factory=dict)
    last_modified_date_time: Optional[str] = None


class DriveItem(GraphModel):
    id: str
    name: str
    web_url: Optional[str] = None
    size: Optional[int] = None
    last_modified_date_time: Optional[str] = None
    file: Optional[FileFacet] = None
    folder: Optional[dict[str, Any]] = None
    parent_reference: Optional[ItemReference] = None
    list_item: Optional[ListItem] = None

    @property
    def mime_type(self) -> Optional[str]:
        return self.file.mime_type if self.file else None

    def _direct_field(self, alias: str, name: str) -> Optional[str]:
        extra = self.model_extra or {}
        return extra.get(alias) or extra.get(name)

    @property
    def drive_id(self) -> Optional[str]:
        """A drive id set on the item itself wins over its parent reference."""
        direct = self._direct_field("driveId", "drive_id")
        if direct:
            return direct
        return self.parent_reference.drive_id if self.parent_reference else None

    @property
    def site_id(self) -> Optional[str]:
        direct = self._direct_field("siteId", "site_id")
        if direct:
            return direct
        return self.parent_reference.site_id if self.parent_reference else None

    @property
    def is_folder(self) -> bool:
        return self.folder is not None

    @property
    def updated_at(self) -> Optional[str]:
        if self.list_item and self.list_item.last_modified_date_time:
            return self.list_item.last_modified_date_time
        return self.last_modified_date_time
