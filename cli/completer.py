"""Custom completer for the RelaySync CLI with file autocompletion."""

from pathlib import Path
from typing import Iterable, Optional

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, STORAGE_CLASS_NAMES


class RelaySyncCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Local file path completion for the 'upload' command
    - Storage class completion for the 'list' command
    """

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = base_dir

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        current_word = "" if is_typing_new_token else tokens[-1]

        if command == "list" and len(tokens) - (0 if is_typing_new_token else 1) == 1:
            for name in STORAGE_CLASS_NAMES:
                if name.startswith(current_word.lower()):
                    yield Completion(name, start_position=-len(current_word))
            return

        if command != "upload" or current_word.startswith("-"):
            return
        if len(tokens) >= 2 and tokens[-1 if is_typing_new_token else -2] == "--name":
            return

        already_typed = set(tokens[1:])
        if not is_typing_new_token:
            already_typed.discard(current_word)

        yield from self._complete_paths(current_word, already_typed)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_paths(self, partial: str, exclude: set) -> Iterable[Completion]:
        """
        Complete file and directory paths relative to the working directory.

        Directories are offered with a trailing slash so completion can descend.
        """
        base = self.base_dir or Path.cwd()
        directory_part, _, name_part = partial.rpartition("/")
        if directory_part or partial.startswith("/"):
            directory = Path(directory_part or "/").expanduser()
            if not directory.is_absolute():
                directory = base / directory
            prefix = f"{directory_part}/"
        else:
            directory = base
            prefix = ""

        try:
            entries = sorted(directory.iterdir())
        except OSError:
            return

        name_lower = name_part.lower()
        for entry in entries:
            if entry.name.startswith(".") and not name_part.startswith("."):
                continue
            if not entry.name.lower().startswith(name_lower):
                continue
            candidate = f"{prefix}{entry.name}"
            if entry.is_dir():
                yield Completion(f"{candidate}/", start_position=-len(partial), display=f"{entry.name}/")
            elif candidate not in exclude:
                yield Completion(candidate, start_position=-len(partial), display=entry.name)
