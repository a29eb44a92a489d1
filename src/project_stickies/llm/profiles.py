"""Model profiles: which model serves which operation."""

from abc import ABC, abstractmethod
from enum import Enum

SONNET_MODEL = "claude-sonnet-4-5-20250929"
HAIKU_MODEL = "claude-haiku-4-5-20251001"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"


class ModelProfile(str, Enum):
    """User-selectable model profile."""

    SONNET = "sonnet"
    HAIKU = "haiku"
    BALANCED = "balanced"


class Operation(str, Enum):
    """Kind of model call being made."""

    DISCOVERY = "discovery"
    GENERATION = "generation"


class ModelSelector(ABC):
    """Strategy mapping an operation to a concrete model id."""

    def __init__(self, label: str, description: str):
        self.label = label
        self.description = description

    @abstractmethod
    def model_for(self, operation: Operation) -> str:
        """Return the model id used for ``operation``."""


class SingleModelSelector(ModelSelector):
    """Uses the same model for every operation."""

    def __init__(self, model: str, label: str, description: str):
        super().__init__(label, description)
        self.model = model

    def model_for(self, operation: Operation) -> str:
        return self.model


class BalancedModelSelector(ModelSelector):
    """Fast model for file discovery, high-quality model for task generation."""

    def __init__(
        self,
        discovery_model: str = HAIKU_MODEL,
        generation_model: str = SONNET_MODEL,
    ):
        super().__init__("BALANCED", "Haiku for discovery, Sonnet for generation")
        self.discovery_model = discovery_model
        self.generation_model = generation_model

    def model_for(self, operation: Operation) -> str:
        if operation == Operation.DISCOVERY:
            return self.discovery_model
        return self.generation_model


MODEL_SELECTORS: dict[ModelProfile, ModelSelector] = {
    ModelProfile.SONNET: SingleModelSelector(
        SONNET_MODEL, "SONNET", "Intelligent, best for complex analysis"
    ),
    ModelProfile.HAIKU: SingleModelSelector(
        HAIKU_MODEL, "HAIKU", "Fast and economical, best for simple tasks"
    ),
    ModelProfile.BALANCED: BalancedModelSelector(),
}

DEFAULT_PROFILE = ModelProfile.BALANCED


def get_model_selector(profile: ModelProfile | str | None = None) -> ModelSelector:
    """Look up the selector for a profile name or enum value.

    Raises:
        ValueError: If the profile is unknown
    """
    return MODEL_SELECTORS[ModelProfile(profile or DEFAULT_PROFILE)]
