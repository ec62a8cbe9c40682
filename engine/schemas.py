"""Pydantic schemas for relay responses."""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from common.types import FileRecord, StorageClass


class RelayModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FileRecordPayload(RelayModel):
    """One file entry as the relay reports it."""
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, validation_alias=AliasChoices("originalName", "name", "displayName"))
    size: int = Field(validation_alias=AliasChoices("size", "sizeBytes"))
    mime_type: str = Field(
        default="application/octet-stream",
        validation_alias=AliasChoices("mimetype", "mimeType"),
    )
    created_at_ms: int = Field(
        default=0,
        validation_alias=AliasChoices("timestamp", "uploadedAt", "createdAtMs"),
    )
    ipfs_hash: Optional[str] = Field(default=None, validation_alias=AliasChoices("ipfsHash", "remoteHash"))
    storage_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("storageType", "storageClass"))

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("created_at_ms", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> int:
        if value is None or value == "":
            return 0
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0

    @field_validator("mime_type", mode="before")
    @classmethod
    def _default_mime(cls, value: Any) -> Any:
        return value or "application/octet-stream"

    def to_record(self) -> FileRecord:
        remote_hash = self.ipfs_hash or None
        return FileRecord(
            id=self.id,
            display_name=self.name,
            mime_type=self.mime_type,
            size_bytes=self.size,
            created_at_ms=self.created_at_ms,
            storage_class=StorageClass.from_wire(self.storage_type, remote_hash),
            remote_hash=remote_hash,
        )


class ListFilesResponse(RelayModel):
    """Response model for file listing; ``results`` is accepted as an alias of ``files``."""
    success: bool = False
    files: Optional[List[Any]] = None
    results: Optional[List[Any]] = None
    error: Optional[str] = None

    def entries(self) -> List[Any]:
        if self.files is not None:
            return self.files
        return self.results or []


class UploadResponse(RelayModel):
    """Response model for file upload."""
    success: bool = False
    file: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    is_duplicate: bool = Field(default=False, validation_alias=AliasChoices("isDuplicate", "is_duplicate"))
    existing_file: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("existingFile", "existing_file"),
    )

    def reports_duplicate(self) -> bool:
        if self.is_duplicate or self.existing_file:
            return True
        return bool(self.file and self.file.get("isDuplicate"))


class OperationResponse(RelayModel):
    """Response model for delete, pin and unpin."""
    success: bool = False
    error: Optional[str] = None
    message: Optional[str] = None


class UploadExistingResponse(RelayModel):
    """Response model for promoting a stored file to the content network."""
    success: bool = False
    ipfs_hash: Optional[str] = Field(default=None, validation_alias=AliasChoices("ipfsHash", "hash", "remoteHash"))
    error: Optional[str] = None


class PinStatusResponse(RelayModel):
    success: bool = False
    is_pinned: bool = Field(default=False, validation_alias=AliasChoices("isPinned", "is_pinned"))


class RemoteStatusDetails(RelayModel):
    enabled: bool = False


class RemoteStatusResponse(RelayModel):
    success: bool = False
    status: Optional[RemoteStatusDetails] = None
    error: Optional[str] = None


class HealthDetails(RelayModel):
    error: Optional[str] = None
    details: Optional[Any] = None


class HealthCheckResponse(RelayModel):
    success: bool = False
    enabled: bool = True
    message: Optional[str] = None
    health: Optional[HealthDetails] = None
