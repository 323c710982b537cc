from enum import Enum
from typing import ClassVar

from pydantic import BaseModel


class ModelFamily(Enum):
    """Which request/response shape a model or source speaks."""

    OPENAI = "openai"
    OPENROUTER = "openrouter"
    CUSTOM = "custom"


class ReasoningConfig(BaseModel):
    """Extended-thinking budget sent as ``reasoning`` in the request."""

    max_tokens: int = 2000


DEFAULT_REASONING = ReasoningConfig()


class ChatModel(BaseModel):
    family: ClassVar[ModelFamily]

    id: str
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def reasoning(self) -> ReasoningConfig | None:
        return None


class OpenAICompatibleModel(ChatModel):
    """A model served through an OpenAI-compatible chat-completions API.

    Args:
        id: Model id used in completion requests.
        name: Human-readable name.
        description: What the model is good at.
        context_length: Maximum context length in tokens.
        supported_parameters: Request parameters the model accepts.
        reasoning_config: Explicit reasoning budget. When unset, models
            that list ``"reasoning"`` in *supported_parameters* get the
            default budget.
    """

    description: str | None = None
    context_length: int | None = None
    supported_parameters: list[str] | None = None
    reasoning_config: ReasoningConfig | None = None

    @property
    def supports_reasoning(self) -> bool:
        return "reasoning" in (self.supported_parameters or [])

    @property
    def reasoning(self) -> ReasoningConfig | None:
        if self.reasoning_config is not None:
            return self.reasoning_config
        return DEFAULT_REASONING if self.supports_reasoning else None


class OpenAIModel(OpenAICompatibleModel):
    family: ClassVar[ModelFamily] = ModelFamily.OPENAI


class OpenRouterModel(OpenAICompatibleModel):
    family: ClassVar[ModelFamily] = ModelFamily.OPENROUTER


class CustomModel(ChatModel):
    """A model id served by whatever endpoint the source points at.

    Custom models are accepted by every source.
    """

    family: ClassVar[ModelFamily] = ModelFamily.CUSTOM


Model = OpenAIModel | OpenRouterModel | CustomModel
