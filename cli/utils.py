"""Utility functions for CLI output."""

from datetime import datetime
from typing import Iterable

from cli.constants import GREEN, RED, RESET, YELLOW
from common.types import FileRecord, Notification, Severity

SEVERITY_COLORS = {
    Severity.INFO: "",
    Severity.SUCCESS: GREEN,
    Severity.WARNING: YELLOW,
    Severity.ERROR: RED,
}


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_timestamp(ms: int) -> str:
    if ms <= 0:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def format_file_table(records: Iterable[FileRecord]) -> str:
    """Render records as an aligned text table."""
    records = list(records)
    if not records:
        return "No files found"

    rows = [("ID", "NAME", "SIZE", "STORAGE", "UPLOADED")]
    for record in records:
        rows.append((
            record.id,
            record.display_name,
            format_file_size(record.size_bytes),
            record.storage_class.value,
            format_timestamp(record.created_at_ms),
        ))

    widths = [max(len(row[column]) for row in rows) for column in range(len(rows[0]))]
    lines = ["  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip() for row in rows]
    lines.append(f"\n{len(records)} file(s), {format_file_size(sum(r.size_bytes for r in records))}")
    return "\n".join(lines)


def format_notification(notification: Notification) -> str:
    color = SEVERITY_COLORS.get(notification.severity, "")
    label = notification.severity.value.upper()
    if color:
        return f"{color}[{label}]{RESET} {notification.message}"
    return f"[{label}] {notification.message}"
