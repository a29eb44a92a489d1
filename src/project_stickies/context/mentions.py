"""Extraction of ``@path`` mentions from raw text."""

import re

MENTION_PATTERN = re.compile(r"@[\w/\-.]+")


def extract_mentions(text: str | None) -> list[str]:
    """Return unique ``@path`` tokens in order of first occurrence."""
    if not text:
        return []
    return list(dict.fromkeys(MENTION_PATTERN.findall(text)))


def mention_to_path(mention: str) -> str:
    """Strip the leading ``@`` of a mention token."""
    return mention[1:] if mention.startswith("@") else mention


def path_to_mention(relative_path: str) -> str:
    return relative_path if relative_path.startswith("@") else f"@{relative_path}"
