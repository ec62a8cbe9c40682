"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from common.logging_config import get_logger
from cli.commands import (
    close_engine,
    get_engine,
    handle_delete,
    handle_list,
    handle_notifications,
    handle_pin,
    handle_promote,
    handle_refresh,
    handle_search,
    handle_status,
    handle_token,
    handle_unpin,
    handle_upload,
)
from cli.completer import RelaySyncCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
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
from cli.parser import ParseError, parse_command
from engine.sync_engine import SyncEngine

logger = get_logger(__name__)


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


async def dispatch_command(cmd_obj, engine: Optional[SyncEngine] = None) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, ListCommand):
        return await handle_list(cmd_obj, engine)
    elif isinstance(cmd_obj, RefreshCommand):
        return await handle_refresh(cmd_obj, engine)
    elif isinstance(cmd_obj, SearchCommand):
        return await handle_search(cmd_obj, engine)
    elif isinstance(cmd_obj, UploadCommand):
        return await handle_upload(cmd_obj, engine)
    elif isinstance(cmd_obj, DeleteCommand):
        return await handle_delete(cmd_obj, engine)
    elif isinstance(cmd_obj, PinCommand):
        return await handle_pin(cmd_obj, engine)
    elif isinstance(cmd_obj, UnpinCommand):
        return await handle_unpin(cmd_obj, engine)
    elif isinstance(cmd_obj, PromoteCommand):
        return await handle_promote(cmd_obj, engine)
    elif isinstance(cmd_obj, StatusCommand):
        return await handle_status(cmd_obj, engine)
    elif isinstance(cmd_obj, NotificationsCommand):
        return await handle_notifications(cmd_obj, engine)
    elif isinstance(cmd_obj, TokenCommand):
        return await handle_token(cmd_obj)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


async def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=RelaySyncCompleter(), history=history, style=STYLE
    )

    clear_screen()
    show_welcome()

    engine = get_engine()
    if engine.settings.auto_refresh_interval_s:
        engine.scheduler.start_auto_refresh(engine.settings.auto_refresh_interval_s)

    try:
        while True:
            try:
                user_input = await session.prompt_async([("class:prompt", PROMPT_TEXT)])

                if not user_input.strip():
                    continue

                if user_input.strip() == "exit":
                    print("Goodbye!")
                    break

                if user_input.strip() == "help":
                    print(HELP_TEXT)
                    continue

                if user_input.strip() == "clear":
                    clear_screen()
                    show_welcome()
                    continue

                cmd_obj = parse_command(user_input)
                result = await dispatch_command(cmd_obj, engine)
                print(result)

            except ParseError as e:
                print(f"Error: {e}")
            except KeyboardInterrupt:
                continue
            except EOFError:
                print("\nGoodbye!")
                break
            except Exception as e:
                logger.error(f"Unexpected error: {e}", exc_info=True)
                print(f"Unexpected error: {e}")
    finally:
        await close_engine()
