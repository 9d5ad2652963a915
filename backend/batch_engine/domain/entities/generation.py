"""Domain entities for the external content generation capability."""

from dataclasses import dataclass, field


@dataclass
class GenerationUsage:
    """Token usage reported for a single generation call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class GenerationRequest:
    """Everything the generation capability needs to write one piece of content.

    Built from an item's immutable input merged with the effective
    generation settings for that item.
    """

    topic: str
    keywords: list[str] = field(default_factory=list)
    additional_info: str = ""
    style: str = "casual"
    length: str = "medium"
    provider: str = "groq"
    model: str = "llama-3.3-70b-versatile"
    temperature: float = 0.7


@dataclass
class GenerationResult:
    """Generated content returned by the capability."""

    title: str
    body: str
    char_count: int = 0
    usage: GenerationUsage = field(default_factory=GenerationUsage)
    cost: float = 0.0  # total cost in USD, 0.0 when the provider is free or unknown
    model: str = ""
