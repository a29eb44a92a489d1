"""Utilities shared across project stickies."""

from project_stickies.utils.json_extract import (
    JSONExtractionError,
    find_json_object,
    parse_json_object,
)
from project_stickies.utils.logging import StickiesFormatter, setup_logging
from project_stickies.utils.text import count_lines, snippet, truncate

__all__ = [
    "JSONExtractionError",
    "StickiesFormatter",
    "count_lines",
    "find_json_object",
    "parse_json_object",
    "setup_logging",
    "snippet",
    "truncate",
]
