"""Async model client with an Anthropic-first provider chain."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Literal

import openai
from anthropic import AsyncAnthropic

from project_stickies.llm.exceptions import ProviderError
from project_stickies.llm.profiles import (
    OPENAI_DEFAULT_MODEL,
    ModelProfile,
    ModelSelector,
    Operation,
    get_model_selector,
)

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


@dataclass
class ReplyCitation:
    url: str
    title: str = ""
    cited_text: str = ""


@dataclass
class ReplyBlock:
    """One content block of a model reply, normalized across providers."""

    index: int
    type: str
    text: str | None = None
    citations: list[ReplyCitation] = field(default_factory=list)


@dataclass
class ModelReply:
    provider: str
    model: str
    blocks: list[ReplyBlock] = field(default_factory=list)
    stop_reason: str | None = None

    def text_blocks(self) -> list[ReplyBlock]:
        return [block for block in self.blocks if block.type == "text" and block.text is not None]

    def last_text(self) -> str | None:
        """Text of the last pure-text block, skipping tool-use interleaving."""
        blocks = self.text_blocks()
        return blocks[-1].text if blocks else None

    def full_text(self) -> str:
        return "".join(block.text or "" for block in self.text_blocks())


class LLMClient:
    """Issues model calls for discovery and generation.

    Anthropic is preferred when its key is available; OpenAI serves as the
    primary provider when it is the only key, or as an explicit fallback.
    """

    def __init__(
        self,
        api_key: str | None = None,
        openai_api_key: str | None = None,
        model_profile: ModelProfile | str | None = None,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
    ):
        """Initialize the client.

        Args:
            api_key: Anthropic API key (falls back to ANTHROPIC_API_KEY env var)
            openai_api_key: OpenAI API key (falls back to OPENAI_API_KEY env var)
            model_profile: Profile choosing models per operation
            llm_provider: "auto", "anthropic" or "openai"
            llm_fallback_provider: Provider tried when the primary call fails
            allow_fallback: Whether the fallback provider may be used

        Raises:
            ProviderError: If no API key is found
        """
        self.api_key: str | None = (
            api_key
            or os.getenv("ANTHROPIC_API_KEY")
            or os.getenv("CLAUDE_CODE_OAUTH_TOKEN")
        )
        self.openai_api_key: str | None = openai_api_key or os.getenv("OPENAI_API_KEY")
        self.selector: ModelSelector = get_model_selector(model_profile)
        self.llm_provider: Literal["anthropic", "openai", "auto"] = "auto"
        self.llm_fallback_provider: str | None = None
        self.allow_fallback: bool = False
        self._anthropic_client: AsyncAnthropic | None = None
        self._openai_client: openai.AsyncOpenAI | None = None
        if self.api_key:
            self._anthropic_client = AsyncAnthropic(api_key=self.api_key)
        if self.openai_api_key:
            self._openai_client = openai.AsyncOpenAI(api_key=self.openai_api_key)
        if not (self._anthropic_client or self._openai_client):
            raise ProviderError(
                "No Anthropic or OpenAI API key found. "
                "Provide via parameters, ANTHROPIC_API_KEY, CLAUDE_CODE_OAUTH_TOKEN, "
                "or OPENAI_API_KEY env vars."
            )
        self.set_provider_config(
            llm_provider=llm_provider,
            llm_fallback_provider=llm_fallback_provider,
            allow_fallback=allow_fallback,
        )

    def _normalize_provider(self, value: str) -> Literal["anthropic", "openai", "auto"]:
        if value not in {"auto", "anthropic", "openai"}:
            raise ProviderError(f"Unsupported provider: {value}")
        return value

    def set_provider_config(
        self,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
    ) -> None:
        self.llm_provider = self._normalize_provider(llm_provider)
        self.llm_fallback_provider = (
            self._normalize_provider(llm_fallback_provider) if llm_fallback_provider else None
        )
        self.allow_fallback = bool(allow_fallback)

        if self.llm_provider == "anthropic" and self._anthropic_client is None:
            raise ProviderError("No Anthropic API key found for provider 'anthropic'.")
        if self.llm_provider == "openai" and self._openai_client is None:
            raise ProviderError("No OpenAI API key found for provider 'openai'.")
        if self.allow_fallback and self.llm_fallback_provider:
            if self.llm_fallback_provider == "anthropic" and self._anthropic_client is None:
                raise ProviderError(
                    "Fallback provider requested as anthropic but ANTHROPIC_API_KEY is not set."
                )
            if self.llm_fallback_provider == "openai" and self._openai_client is None:
                raise ProviderError(
                    "Fallback provider requested as openai but OPENAI_API_KEY is not set."
                )

    def _primary_provider(self) -> Literal["anthropic", "openai"]:
        if self.llm_provider == "auto":
            if self._anthropic_client is not None:
                return "anthropic"
            return "openai"
        return self.llm_provider

    def _provider_chain(self) -> list[str]:
        chain: list[str] = [self._primary_provider()]
        if self.allow_fallback and self.llm_fallback_provider:
            fallback = self.llm_fallback_provider
            if fallback != chain[0]:
                chain.append(fallback)
        return chain

    def resolve_model(self, provider: str, operation: Operation) -> str:
        model = self.selector.model_for(operation)
        if provider == "openai" and model.startswith("claude-"):
            return OPENAI_DEFAULT_MODEL
        return model

    async def create_message(
        self,
        *,
        operation: Operation,
        system: str,
        prompt: str,
        max_tokens: int = 4096,
        web_search: bool = False,
    ) -> ModelReply:
        """Send one prompt through the provider chain.

        Args:
            operation: Discovery or generation; selects the model
            system: System prompt
            prompt: User message
            max_tokens: Reply token budget
            web_search: Offer the web search tool (Anthropic only)

        Returns:
            Normalized reply

        Raises:
            ProviderError: If every provider in the chain fails
        """
        providers = self._provider_chain()
        last_error: Exception | None = None
        for provider in providers:
            model = self.resolve_model(provider, operation)
            try:
                if provider == "anthropic":
                    return await self._call_anthropic(model, system, prompt, max_tokens, web_search)
                return await self._call_openai(model, system, prompt, max_tokens, web_search)
            except Exception as error:
                logger.warning("%s call via %s failed: %s", operation.value, provider, error)
                last_error = error

        raise ProviderError(f"Failed to call model: {last_error}") from last_error

    async def _call_anthropic(
        self, model: str, system: str, prompt: str, max_tokens: int, web_search: bool
    ) -> ModelReply:
        if not self._anthropic_client:
            raise ProviderError("Anthropic client unavailable")
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
        }
        if web_search:
            kwargs["tools"] = [WEB_SEARCH_TOOL]
        response = await self._anthropic_client.messages.create(**kwargs)
        return self._normalize_anthropic(response, model)

    async def _call_openai(
        self, model: str, system: str, prompt: str, max_tokens: int, web_search: bool
    ) -> ModelReply:
        if not self._openai_client:
            raise ProviderError("OpenAI client unavailable")
        if web_search:
            logger.info("Web search is not available with the OpenAI provider; ignoring")
        response = await self._openai_client.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        )
        choice = response.choices[0]
        text = choice.message.content or ""
        return ModelReply(
            provider="openai",
            model=model,
            blocks=[ReplyBlock(index=0, type="text", text=text)],
            stop_reason=getattr(choice, "finish_reason", None),
        )

    @staticmethod
    def _normalize_anthropic(response: Any, model: str) -> ModelReply:
        blocks: list[ReplyBlock] = []
        for index, block in enumerate(response.content):
            block_type = getattr(block, "type", "unknown")
            citations = []
            for citation in getattr(block, "citations", None) or []:
                url = getattr(citation, "url", None)
                if url:
                    citations.append(
                        ReplyCitation(
                            url=url,
                            title=getattr(citation, "title", None) or "",
                            cited_text=getattr(citation, "cited_text", None) or "",
                        )
                    )
            blocks.append(
                ReplyBlock(
                    index=index,
                    type=block_type,
                    text=getattr(block, "text", None) if block_type == "text" else None,
                    citations=citations,
                )
            )
        return ModelReply(
            provider="anthropic",
            model=model,
            blocks=blocks,
            stop_reason=getattr(response, "stop_reason", None),
        )
