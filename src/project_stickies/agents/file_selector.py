"""Discovery agent: asks a fast model which project files matter for raw notes."""

import logging

from pydantic import ValidationError

from project_stickies.agents.exceptions import FileSelectionError
from project_stickies.llm import LLMClient, Operation, ProviderError
from project_stickies.models import DiscoveredFile, DiscoveryResult
from project_stickies.utils.json_extract import JSONExtractionError, parse_json_object

logger = logging.getLogger(__name__)

MAX_DISCOVERED_FILES = 8
LINE_BUDGET = 2000
LARGE_FILE_LINES = 300
MAX_KEYWORDS = 4
MAX_TREE_CHARS = 60_000
DISCOVERY_MAX_TOKENS = 1024

SYSTEM_PROMPT = """You select source files that give useful context for a developer's task notes.

You receive a project file tree and raw task notes. Reply with JSON only:
{
  "explicit": string[],
  "discovered": [{"file": string, "readFully": boolean, "keywords": string[]}],
  "reasoning": string
}

Rules:
- "explicit" lists every file the notes mention with @path. Always include them.
- "discovered" lists at most {max_files} other files that are likely relevant.
- Keep the combined size of discovered files under about {line_budget} lines.
- For a file likely to exceed {large_file_lines} lines set "readFully": false and give
  2-4 search keywords; only lines around keyword matches will be read.
- Use paths exactly as they appear in the tree, relative to the project root.
"""


class FileSelector:
    """Selects context files with a secondary model call."""

    def __init__(
        self,
        client: LLMClient,
        max_files: int = MAX_DISCOVERED_FILES,
        line_budget: int = LINE_BUDGET,
    ):
        self.client = client
        self.max_files = max_files
        self.line_budget = line_budget

    def _system_prompt(self) -> str:
        return (
            SYSTEM_PROMPT.replace("{max_files}", str(self.max_files))
            .replace("{line_budget}", str(self.line_budget))
            .replace("{large_file_lines}", str(LARGE_FILE_LINES))
        )

    def _build_prompt(self, file_tree: str, raw_text: str) -> str:
        tree = file_tree
        if len(tree) > MAX_TREE_CHARS:
            tree = tree[:MAX_TREE_CHARS] + "\n... (file tree truncated)"
        return f"Project file tree:\n{tree}\n\nTask notes:\n{raw_text}\n\nSelect the relevant files."

    async def select_files(self, file_tree: str, raw_text: str) -> DiscoveryResult:
        """Ask the discovery model for relevant files.

        Args:
            file_tree: Directory listing of the project
            raw_text: The user's raw task notes

        Returns:
            Parsed selection; an unparsable reply yields an empty result

        Raises:
            FileSelectionError: If the model call itself fails
        """
        try:
            reply = await self.client.create_message(
                operation=Operation.DISCOVERY,
                system=self._system_prompt(),
                prompt=self._build_prompt(file_tree, raw_text),
                max_tokens=DISCOVERY_MAX_TOKENS,
            )
        except ProviderError as exc:
            raise FileSelectionError(f"File discovery call failed: {exc}") from exc

        return parse_discovery_response(reply.full_text(), max_files=self.max_files)


def parse_discovery_response(text: str, max_files: int = MAX_DISCOVERED_FILES) -> DiscoveryResult:
    """Parse the discovery reply defensively.

    Any missing or malformed payload degrades to an empty selection whose
    ``reasoning`` carries the error message.
    """
    try:
        result = DiscoveryResult.model_validate(parse_json_object(text))
    except (JSONExtractionError, ValidationError) as exc:
        logger.warning("Discovery response could not be parsed: %s", exc)
        return DiscoveryResult.failed(f"Failed to parse discovery response: {exc}")

    explicit = list(dict.fromkeys(result.explicit))
    seen = set(explicit)
    discovered: list[DiscoveredFile] = []
    for entry in result.discovered:
        if not entry.file or entry.file in seen:
            continue
        seen.add(entry.file)
        keywords = list(dict.fromkeys(entry.keywords))[:MAX_KEYWORDS]
        read_fully = entry.read_fully or not keywords
        discovered.append(
            DiscoveredFile(file=entry.file, read_fully=read_fully, keywords=[] if read_fully else keywords)
        )
        if len(discovered) >= max_files:
            break

    return DiscoveryResult(explicit=explicit, discovered=discovered, reasoning=result.reasoning)
