"""OpenRouter content generator — concrete implementation of the ContentGenerator port.

Reuses the OpenRouterClient for API calls and adds the blog-writing prompt
engineering: a system prompt per writing style, a token budget per length,
and parsing of the markdown title out of the generated post.
"""

import logging
import re

import httpx

from batch_engine.application.interfaces.chat_provider import ChatProvider
from batch_engine.application.interfaces.content_generator import ContentGenerator
from batch_engine.application.services.estimator import calculate_cost
from batch_engine.domain.entities import (
    ChatMessage,
    GenerationRequest,
    GenerationResult,
    GenerationUsage,
)
from batch_engine.domain.exceptions import ChatProviderError, GenerationError

logger = logging.getLogger(__name__)

_STYLE_PROMPTS: dict[str, str] = {
    "casual": """You are a blog writer with a warm, conversational voice.

Guidelines:
- Use the occasional emoji, at most one or two per paragraph
- Include personal impressions and experiences
- Talk to the reader directly
- Keep paragraphs short, three or four sentences
- End with a question or an invitation to comment

Avoid:
- Stiff, formal prose
- Advertising language""",
    "informative": """You are a blog writer who delivers accurate, useful information.

Guidelines:
- Clear structure, like a table of contents
- Concrete explanations with examples
- Lists and tables where they help
- A short summary of the key points

Avoid:
- Unverified claims
- Excessive personal opinion""",
    "review": """You are a blog writer who publishes honest, balanced reviews.

Guidelines:
- Separate pros and cons clearly
- Base every point on actual use
- Say who the product is for
- Finish with a rating summary

Avoid:
- One-sided praise
- Criticism without evidence""",
    "marketing": """You are a copywriter who communicates value clearly.

Guidelines:
- Connect to the reader's needs
- A hook in the title
- Present a problem, then the solution
- Close with a call to action
- Work the keywords in naturally for SEO

Avoid:
- Exaggeration
- Keyword stuffing""",
    "story": """You are a blog writer who tells immersive stories.

Guidelines:
- Chronological or classic narrative arc
- Vivid description and emotion
- Dialogue where it fits
- An ending that lingers

Avoid:
- Flat lists of events
- Melodrama""",
}

_LENGTH_CONFIG: dict[str, dict] = {
    "short": {"max_tokens": 1500, "guide": "short, about 500 characters"},
    "medium": {"max_tokens": 3000, "guide": "medium, about 1000 characters"},
    "long": {"max_tokens": 5000, "guide": "long, about 2000 characters"},
}

_TITLE_RE = re.compile(r"^#\s+(.+?)\s*$", re.MULTILINE)
_MARKUP_RE = re.compile(r"[#\s]")


def parse_post(content: str) -> tuple[str, str, int]:
    """Split generated markdown into (title, body, char_count).

    The title is the first level-one heading; the body is everything else.
    The character count ignores heading markers and whitespace.
    """
    text = content.strip()
    match = _TITLE_RE.search(text)
    if match:
        title = match.group(1).strip()
        body = (text[: match.start()] + text[match.end():]).strip()
    else:
        title = ""
        body = text
    return title, body, len(_MARKUP_RE.sub("", body))


class OpenRouterContentGenerator(ContentGenerator):
    """Generates one blog post per request through a ChatProvider.

    Requests name a provider and a model; OpenRouter addresses models as
    ``<provider>/<model>``, so a bare model id is prefixed with the provider.
    Any provider or transport failure is raised as GenerationError.
    """

    def __init__(self, chat_provider: ChatProvider):
        self._chat = chat_provider

    @staticmethod
    def _route_model(provider: str, model: str) -> str:
        if "/" in model or not provider:
            return model
        return f"{provider}/{model}"

    @staticmethod
    def _build_prompt(request: GenerationRequest) -> str:
        length_guide = _LENGTH_CONFIG.get(request.length, _LENGTH_CONFIG["medium"])["guide"]
        keywords = (
            ", ".join(request.keywords)
            if request.keywords
            else "(none, derive them from the topic)"
        )

        prompt = (
            "Write a blog post with the following requirements.\n\n"
            f"## Topic\n{request.topic}\n\n"
            f"## Keywords\n{keywords}\n\n"
            f"## Length\n{length_guide}\n"
        )
        if request.additional_info:
            prompt += f"\n## Additional information\n{request.additional_info}\n"

        prompt += (
            "\n## Instructions\n"
            "1. Start with the title as a level-one markdown heading (# Title)\n"
            "2. Structure the post with 3-5 level-two (##) sections\n"
            "3. Include the keywords naturally\n"
            "4. Return only the post, in markdown\n"
        )
        return prompt

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        model = self._route_model(request.provider, request.model)
        messages = [
            ChatMessage(
                role="system",
                content=_STYLE_PROMPTS.get(request.style, _STYLE_PROMPTS["casual"]),
            ),
            ChatMessage(role="user", content=self._build_prompt(request)),
        ]
        max_tokens = _LENGTH_CONFIG.get(request.length, _LENGTH_CONFIG["medium"])["max_tokens"]

        try:
            completion = await self._chat.complete(
                messages,
                model,
                temperature=request.temperature,
                max_tokens=max_tokens,
            )
        except ChatProviderError as exc:
            raise GenerationError(
                exc.message, provider=exc.provider, status_code=exc.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(
                f"Request to {self._chat.provider_name} failed: {exc}",
                provider=self._chat.provider_name,
            ) from exc

        if not completion.content.strip():
            raise GenerationError(
                f"Model '{model}' returned no content (finish_reason={completion.finish_reason})",
                provider=self._chat.provider_name,
            )

        title, body, char_count = parse_post(completion.content)
        usage = GenerationUsage(
            input_tokens=completion.usage.prompt_tokens,
            output_tokens=completion.usage.completion_tokens,
        )
        cost = completion.usage.cost
        if cost is None:
            cost = calculate_cost(
                request.provider, request.model, usage.input_tokens, usage.output_tokens
            )

        logger.debug(
            "Generated %r with %s: %d chars, %d tokens",
            title or request.topic,
            model,
            char_count,
            usage.total_tokens,
        )
        return GenerationResult(
            title=title or request.topic,
            body=body,
            char_count=char_count,
            usage=usage,
            cost=cost,
            model=completion.model or model,
        )
