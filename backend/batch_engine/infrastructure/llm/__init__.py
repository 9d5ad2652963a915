"""LLM infrastructure module — concrete content generator implementations."""

from .openrouter_content_generator import OpenRouterContentGenerator

__all__ = [
    "OpenRouterContentGenerator",
]
