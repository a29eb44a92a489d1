"""Best-effort resolution of relative JavaScript/TypeScript imports."""

import logging
import re
from pathlib import Path

from project_stickies.context.mentions import path_to_mention

logger = logging.getLogger(__name__)

# ES module, bare side-effect, CommonJS and type-only imports
IMPORT_PATTERNS = [
    re.compile(r"import\s+[^'\"]*?\s+from\s+['\"](.+?)['\"]"),
    re.compile(r"import\s+['\"](.+?)['\"]"),
    re.compile(r"require\s*\(\s*['\"](.+?)['\"]\s*\)"),
    re.compile(r"import\s+type\s+[^'\"]*?\s+from\s+['\"](.+?)['\"]"),
]

CANDIDATE_EXTENSIONS = ["", ".ts", ".tsx", ".js", ".jsx"]
INDEX_SUFFIXES = ["/index.ts", "/index.tsx", "/index.js"]


def extract_import_specifiers(content: str) -> list[str]:
    """Return relative import specifiers in order of first appearance."""
    found: dict[str, int] = {}
    for pattern in IMPORT_PATTERNS:
        for match in pattern.finditer(content):
            specifier = match.group(1).strip()
            if specifier.startswith(".") and specifier not in found:
                found[specifier] = match.start()
    return sorted(found, key=found.__getitem__)


def resolve_import(specifier: str, from_file: Path, project_root: Path) -> str | None:
    """Resolve one relative specifier to a project-relative posix path.

    Candidates are tried in order: the bare path, each of
    ``CANDIDATE_EXTENSIONS`` appended, then ``INDEX_SUFFIXES``. The first
    existing file that stays inside ``project_root`` wins.

    Args:
        specifier: Import string such as ``./db`` or ``../lib/helper.ts``
        from_file: Absolute path of the importing file
        project_root: Resolved project root

    Returns:
        Relative path, or None when nothing resolves inside the root
    """
    base = from_file.parent / specifier
    for suffix in [*CANDIDATE_EXTENSIONS, *INDEX_SUFFIXES]:
        candidate = Path(f"{base}{suffix}").resolve()
        if not candidate.is_relative_to(project_root):
            continue
        if candidate.is_file():
            return candidate.relative_to(project_root).as_posix()
    return None


def resolve_imports(content: str, file_path: str | Path, project_root: str | Path) -> list[str]:
    """Extract and resolve the relative imports of a file.

    Args:
        content: Text of the importing file
        file_path: Filesystem path of the importing file
        project_root: Project root directory

    Returns:
        Deduplicated ``@relative/path`` mention tokens
    """
    root = Path(project_root).resolve()
    source = Path(file_path).resolve()
    mentions: list[str] = []
    for specifier in extract_import_specifiers(content):
        try:
            resolved = resolve_import(specifier, source, root)
        except (OSError, ValueError) as exc:
            logger.debug("Failed to resolve import %r in %s: %s", specifier, source, exc)
            continue
        if resolved is None:
            logger.debug("Dropped unresolved import %r in %s", specifier, source)
            continue
        mention = path_to_mention(resolved)
        if mention not in mentions:
            mentions.append(mention)
    return mentions
