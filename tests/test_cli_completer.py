"""Tests for RelaySyncCompleter."""

import pytest

from prompt_toolkit.document import Document

from cli.completer import RelaySyncCompleter
from cli.constants import COMMANDS


@pytest.fixture
def workdir(tmp_path):
    """
    Create a working directory with files to upload.

    Returns:
        Path to the temporary directory
    """
    (tmp_path / "document.txt").write_text("content")
    (tmp_path / "data.csv").write_text("content")
    (tmp_path / ".hidden").write_text("content")
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "report.pdf").write_text("content")
    return tmp_path


@pytest.fixture
def completer(workdir):
    return RelaySyncCompleter(base_dir=workdir)


def get_completions_list(completer, text):
    """Helper to get list of completion texts from completer."""
    doc = Document(text, len(text))
    return [c.text for c in completer.get_completions(doc, None)]


class TestCommandCompletion:
    """Tests for command name completion."""

    def test_empty_input_shows_all_commands(self, completer):
        completions = get_completions_list(completer, "")
        for cmd in COMMANDS:
            assert cmd in completions

    def test_partial_command_filters(self, completer):
        completions = get_completions_list(completer, "un")
        assert completions == ["unpin"]

    def test_command_completion_case_insensitive(self, completer):
        completions = get_completions_list(completer, "UP")
        assert "upload" in completions


class TestPathCompletion:
    """Tests for file path completion in upload command."""

    def test_upload_lists_working_directory(self, completer):
        completions = get_completions_list(completer, "upload ")
        assert completions == ["data.csv", "docs/", "document.txt"]

    def test_upload_filters_by_prefix(self, completer):
        completions = get_completions_list(completer, "upload doc")
        assert completions == ["docs/", "document.txt"]

    def test_upload_descends_into_directories(self, completer):
        completions = get_completions_list(completer, "upload docs/")
        assert completions == ["docs/report.pdf"]

    def test_upload_excludes_already_typed_files(self, completer):
        completions = get_completions_list(completer, "upload document.txt ")
        assert "document.txt" not in completions
        assert "data.csv" in completions

    def test_hidden_files_only_with_dot_prefix(self, completer):
        assert ".hidden" not in get_completions_list(completer, "upload ")
        assert get_completions_list(completer, "upload .h") == [".hidden"]

    def test_no_completion_after_name_flag(self, completer):
        assert get_completions_list(completer, "upload a.txt --name ") == []

    def test_other_commands_get_no_paths(self, completer):
        assert get_completions_list(completer, "delete ") == []


class TestListCompletion:
    def test_list_offers_storage_classes(self, completer):
        completions = get_completions_list(completer, "list local")
        assert completions == ["local-only", "local-with-remote"]
