from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UniqueModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ContentRegistrationRequest(UniqueModel):
    key: str
    title: str
    mime_type: str
    owner_type: str
    scope_id: str
    source_owner_type: str
    source_kind: str
    source_name: str
    byte_size: Optional[int] = None


class ContentRegistrationResponse(UniqueModel):
    id: str
    key: str
    byte_size: int = 0
    mime_type: str
    owner_type: str
    owner_id: Optional[str] = None
    write_url: str
    read_url: str
    created_at: Optional[str] = None
    internally_stored_at: Optional[str] = None
    source: dict[str, Any] = Field(default_factory=dict)


class IngestionFinalizationRequest(UniqueModel):
    key: str
    title: Optional[str] = None
    mime_type: str
    owner_type: str
    byte_size: int
    scope_id: str
    source_owner_type: str
    source_name: str
    source_kind: str
    file_url: str
    content_id: Optional[str] = None


class IngestionFinalizationResponse(UniqueModel):
    id: str


class FileDiffItem(UniqueModel):
    id: str
    name: str
    url: Optional[str] = None
    updated_at: Optional[str] = None
    key: str


class FileDiffResponse(UniqueModel):
    new_and_updated_files: list[str] = Field(default_factory=list)
    deleted_files: list[str] = Field(default_factory=list)
    moved_files: list[str] = Field(default_factory=list)
