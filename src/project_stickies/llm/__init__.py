"""Model access: profiles and the provider-chained client."""

from project_stickies.llm.client import LLMClient, ModelReply, ReplyBlock, ReplyCitation
from project_stickies.llm.exceptions import LLMError, ProviderError
from project_stickies.llm.profiles import (
    DEFAULT_PROFILE,
    ModelProfile,
    ModelSelector,
    Operation,
    get_model_selector,
)

__all__ = [
    "DEFAULT_PROFILE",
    "LLMClient",
    "LLMError",
    "ModelProfile",
    "ModelReply",
    "ModelSelector",
    "Operation",
    "ProviderError",
    "ReplyBlock",
    "ReplyCitation",
    "get_model_selector",
]
