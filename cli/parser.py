"""Command parser for CLI input."""

import shlex

from cli.constants import STORAGE_CLASS_NAMES
from cli.models import (
    CommandRequest,
    DeleteCommand,
    ListCommand,
    NotificationsCommand,
    PinCommand,
    PromoteCommand,
    RefreshCommand,
    SearchCommand,
    StatusCommand,
    TokenCommand,
    UnpinCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0].lower()
    args = tokens[1:]

    if command_name == "list":
        return _parse_list(args)
    elif command_name == "refresh":
        _expect_no_args(command_name, args)
        return RefreshCommand()
    elif command_name == "search":
        return _parse_search(args)
    elif command_name == "upload":
        return _parse_upload(args)
    elif command_name == "delete":
        return _parse_delete(args)
    elif command_name == "pin":
        return PinCommand(file_id=_single_id(command_name, args))
    elif command_name == "unpin":
        return UnpinCommand(file_id=_single_id(command_name, args))
    elif command_name == "promote":
        return PromoteCommand(file_id=_single_id(command_name, args))
    elif command_name == "status":
        _expect_no_args(command_name, args)
        return StatusCommand()
    elif command_name == "notifications":
        _expect_no_args(command_name, args)
        return NotificationsCommand()
    elif command_name == "token":
        return _parse_token(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _single_id(command_name: str, args: list[str]) -> str:
    if len(args) != 1:
        raise ParseError(f"{command_name} requires exactly 1 argument: <id>")
    return args[0]


def _parse_list(args: list[str]) -> ListCommand:
    """Parse 'list [storage-class]' command."""
    if not args:
        return ListCommand()
    if len(args) > 1:
        raise ParseError("list takes at most one storage class")

    storage_class = args[0].lower()
    if storage_class not in STORAGE_CLASS_NAMES:
        raise ParseError(f"Unknown storage class: {args[0]} (expected one of {', '.join(STORAGE_CLASS_NAMES)})")
    return ListCommand(storage_class=storage_class)


def _parse_search(args: list[str]) -> SearchCommand:
    """Parse 'search key=value ...' command."""
    if not args:
        raise ParseError("search requires at least one key=value filter")

    filters = []
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep or not key:
            raise ParseError(f"Invalid filter '{arg}', expected key=value")
        filters.append((key, value))
    return SearchCommand(filters=tuple(filters))


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path>... [--name NAME]' command."""
    paths = []
    custom_name = None
    index = 0
    while index < len(args):
        arg = args[index]
        if arg == "--name":
            if index + 1 >= len(args):
                raise ParseError("--name requires a value")
            custom_name = args[index + 1]
            index += 2
            continue
        paths.append(arg)
        index += 1

    if not paths:
        raise ParseError("upload requires at least one file path")
    if custom_name is not None and len(paths) > 1:
        raise ParseError("--name can only be used when uploading a single file")

    return UploadCommand(paths=tuple(paths), custom_name=custom_name)


def _parse_delete(args: list[str]) -> DeleteCommand:
    """Parse 'delete <id>...' command."""
    if not args:
        raise ParseError("delete requires at least one file id")

    return DeleteCommand(file_ids=tuple(dict.fromkeys(args)))


def _parse_token(args: list[str]) -> TokenCommand:
    if len(args) != 1:
        raise ParseError("token requires exactly 1 argument: <value> or --clear")
    if args[0] == "--clear":
        return TokenCommand(token=None)
    return TokenCommand(token=args[0])
