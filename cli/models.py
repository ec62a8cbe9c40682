"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class ListCommand:
    """List cached files, optionally filtered by storage class."""

    storage_class: Optional[str] = None
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class RefreshCommand:
    command: Literal["refresh"] = "refresh"


@dataclass(frozen=True)
class SearchCommand:
    """Search files on the relay."""

    filters: tuple[tuple[str, str], ...]
    command: Literal["search"] = "search"


@dataclass(frozen=True)
class UploadCommand:
    """Upload one or more local files."""

    paths: tuple[str, ...]
    custom_name: Optional[str] = None
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DeleteCommand:
    """Delete files by id."""

    file_ids: tuple[str, ...]
    command: Literal["delete"] = "delete"


@dataclass(frozen=True)
class PinCommand:
    file_id: str
    command: Literal["pin"] = "pin"


@dataclass(frozen=True)
class UnpinCommand:
    file_id: str
    command: Literal["unpin"] = "unpin"


@dataclass(frozen=True)
class PromoteCommand:
    """Add a local-only file to the remote network."""

    file_id: str
    command: Literal["promote"] = "promote"


@dataclass(frozen=True)
class StatusCommand:
    command: Literal["status"] = "status"


@dataclass(frozen=True)
class NotificationsCommand:
    command: Literal["notifications"] = "notifications"


@dataclass(frozen=True)
class TokenCommand:
    """Store or clear the bearer token."""

    token: Optional[str]
    command: Literal["token"] = "token"


CommandRequest = (
    ListCommand
    | RefreshCommand
    | SearchCommand
    | UploadCommand
    | DeleteCommand
    | PinCommand
    | UnpinCommand
    | PromoteCommand
    | StatusCommand
    | NotificationsCommand
    | TokenCommand
)
