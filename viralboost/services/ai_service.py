"""
AI copywriting collaborator.

Wraps the OpenAI chat completions API behind ``complete(prompt,
system_prompt, history)``. Each call is bounded by ``AI_TIMEOUT_SECONDS``;
errors surface as ``UpstreamError`` carrying the upstream reason.
"""

from typing import Any

import openai
from openai import AsyncOpenAI

from viralboost.config import Settings
from viralboost.errors import UpstreamError
from viralboost.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Token ceilings per endpoint
GENERATE_BOOST_MAX_TOKENS = 2000
IA_BOOST_MAX_TOKENS = 1500
CHAT_PROMO_MAX_TOKENS = 800

DEFAULT_LANG = "fr"

COACH_SYSTEM_PROMPTS = {
    "fr": (
        "Tu es un expert en marketing digital, growth hacking et promotion de projets en ligne. "
        "Tu donnes des conseils CONCRETS, ACTIONNABLES et PERSONNALISÉS sur : TikTok, Instagram, "
        "SEO, publicités Facebook/Google, email marketing, stratégie de contenu. "
        "Tu réponds en français avec enthousiasme et précision."
    ),
    "en": (
        "You are an expert in digital marketing, growth hacking and online project promotion. "
        "You give CONCRETE, ACTIONABLE and PERSONALIZED advice on: TikTok, Instagram, SEO, "
        "Facebook/Google ads, email marketing, content strategy. "
        "You respond in English with enthusiasm and precision."
    ),
    "es": (
        "Eres un experto en marketing digital, growth hacking y promoción de proyectos en línea. "
        "Das consejos CONCRETOS, ACCIONABLES y PERSONALIZADOS sobre: TikTok, Instagram, SEO, "
        "anuncios Facebook/Google, email marketing, estrategia de contenido. "
        "Respondes en español con entusiasmo y precisión."
    ),
}


def coach_prompt(lang: str | None) -> str:
    return COACH_SYSTEM_PROMPTS.get(lang or DEFAULT_LANG, COACH_SYSTEM_PROMPTS[DEFAULT_LANG])


class AIService:
    """
    Completion client.

    The OpenAI client is created lazily so the app starts without an API key;
    the first call then fails with a clear error instead.
    """

    def __init__(self, config: Settings, client: AsyncOpenAI | None = None):
        self.api_key = config.OPENAI_API_KEY
        self.model = config.OPENAI_MODEL
        self.timeout = config.AI_TIMEOUT_SECONDS
        self.history_turns = config.AI_HISTORY_TURNS
        self.client = client

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            if not self.api_key:
                raise UpstreamError("OPENAI_API_KEY not configured", service="openai", recoverable=False)
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
            logger.info("OpenAI client initialized", model=self.model, timeout=self.timeout)
        return self.client

    def build_messages(
        self,
        prompt: str | None,
        system_prompt: str | None = None,
        history: list[dict[str, Any]] | None = None,
    ) -> list[dict[str, str]]:
        """System prompt, then the last ``AI_HISTORY_TURNS`` history turns, then the prompt."""
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        if history:
            for turn in history[-self.history_turns :]:
                messages.append({"role": turn["role"], "content": turn["content"]})
        if prompt:
            messages.append({"role": "user", "content": prompt})
        return messages

    async def complete(
        self,
        prompt: str | None,
        system_prompt: str | None = None,
        history: list[dict[str, Any]] | None = None,
        max_tokens: int = GENERATE_BOOST_MAX_TOKENS,
    ) -> str:
        messages = self.build_messages(prompt, system_prompt, history)
        if not any(m["role"] != "system" for m in messages):
            raise UpstreamError("Nothing to complete", service="openai", recoverable=False)

        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as e:
            logger.error("OpenAI API timeout", timeout=self.timeout, model=self.model)
            raise UpstreamError("AI request timed out", service="openai") from e
        except openai.APIError as e:
            status_code = getattr(e, "status_code", None)
            logger.error(
                "OpenAI API error",
                error=str(e),
                error_type=type(e).__name__,
                status_code=status_code,
            )
            recoverable = status_code is None or status_code >= 500 or status_code == 429
            raise UpstreamError(str(e), service="openai", recoverable=recoverable) from e

        if not response.choices or not response.choices[0].message.content:
            raise UpstreamError("Empty response from OpenAI API", service="openai")

        text = response.choices[0].message.content.strip()
        logger.info(
            "AI completion done",
            model=self.model,
            turns=len(messages),
            response_length=len(text),
            usage_tokens=response.usage.total_tokens if response.usage else 0,
        )
        return text
