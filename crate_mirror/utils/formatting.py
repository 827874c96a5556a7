"""
Helper functions for formatting data into human-readable strings.
"""

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(bytes_size: int) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    size = float(bytes_size)
    for unit in _SIZE_UNITS[:-1]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {_SIZE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration into a short string, e.g. '2h 34m 12s' or '0.4s' for
    runs shorter than a second.
    """
    if seconds < 1:
        return f"{max(seconds, 0):.1f}s"
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def truncate_body(body: bytes, limit: int = 512) -> str:
    """Renders the start of a response body for diagnostics."""
    text = body[:limit].decode("utf-8", errors="replace")
    if len(body) > limit:
        text += f"... ({len(body) - limit} more bytes)"
    return text
