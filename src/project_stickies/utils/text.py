"""Small text helpers shared by context loaders."""

TRUNCATION_MARKER = "\n... [truncated]"


def count_lines(text: str) -> int:
    if not text:
        return 0
    return text.count("\n") + 1


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, appending a truncation marker."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def snippet(text: str, limit: int = 200) -> str:
    """Single-line preview of ``text`` for error messages."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."
