"""Pydantic models for gathered project context."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileContext(BaseModel):
    """One file (or excerpt of a file) handed to the model as context."""

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    path: str
    content: str
    line_count: int = Field(default=0, alias="lineCount")
    was_grepped: bool = Field(default=False, alias="wasGrepped")
    matched_keywords: list[str] = Field(default_factory=list, alias="matchedKeywords")
    dependencies: list[str] = Field(default_factory=list)  # mention tokens this file imports
    error: str | None = None  # set when the file could not be read


class GatheredContext(BaseModel):
    """Context collected for a single format operation."""

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    files: list[FileContext] = Field(default_factory=list)
    total_lines: int = Field(default=0, alias="totalLines")
    cache_hits: int = Field(default=0, alias="cacheHits")
    cache_misses: int = Field(default=0, alias="cacheMisses")

    @classmethod
    def empty(cls) -> "GatheredContext":
        return cls()

    def paths(self) -> list[str]:
        return [f.path for f in self.files]


class DiscoveredFile(BaseModel):
    """A file selected by the discovery model."""

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    file: str
    read_fully: bool = Field(default=True, alias="readFully")
    keywords: list[str] = Field(default_factory=list)

    @field_validator("file")
    @classmethod
    def _strip_mention_prefix(cls, value: str) -> str:
        value = value.strip()
        return value[1:] if value.startswith("@") else value

    @field_validator("keywords", mode="before")
    @classmethod
    def _coerce_keywords(cls, value):
        if value is None:
            return []
        if isinstance(value, (str, int, float)):
            return [str(value)]
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"keywords must be a list, got {type(value).__name__}")
        return [str(k) for k in value if str(k).strip()]


class DiscoveryResult(BaseModel):
    """Parsed reply of the discovery model."""

    model_config = ConfigDict(frozen=False)

    explicit: list[str] = Field(default_factory=list)
    discovered: list[DiscoveredFile] = Field(default_factory=list)
    reasoning: str = ""

    @field_validator("explicit", mode="before")
    @classmethod
    def _normalize_explicit(cls, value):
        if not value:
            return []
        if isinstance(value, str):
            value = [value]
        elif not isinstance(value, (list, tuple)):
            raise ValueError(f"explicit must be a list of paths, got {type(value).__name__}")
        paths = []
        for item in value:
            item = str(item).strip()
            if item.startswith("@"):
                item = item[1:]
            if item:
                paths.append(item)
        return paths

    @classmethod
    def failed(cls, reason: str) -> "DiscoveryResult":
        return cls(explicit=[], discovered=[], reasoning=reason)
