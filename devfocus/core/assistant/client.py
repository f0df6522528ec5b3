"""
LLM Provider Client
===================

Thin client for an OpenAI-compatible chat-completions endpoint (Groq by
default). The provider is treated as an opaque text-completion function:
prompt in, text out.
"""

from typing import Optional

import httpx
import structlog

from devfocus.core.config import settings
from devfocus.core.exceptions import AIServiceError

logger = structlog.get_logger()


class CompletionClient:
    """
    Client for the chat-completions API.

    Every failure (missing key, network error, HTTP error status, response
    without a message) is raised as AIServiceError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.api_url = api_url or settings.GROQ_API_URL
        self.model = model or settings.GROQ_MODEL
        self._client = client or httpx.AsyncClient(timeout=settings.AI_TIMEOUT_SECONDS)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """
        Send a single-message chat completion and return the reply text.

        Raises:
            AIServiceError: On any transport or provider failure
        """
        if not self.enabled:
            raise AIServiceError("AI provider is not configured")

        try:
            response = await self._client.post(
                self.api_url,
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "ai_provider_http_error",
                status_code=e.response.status_code,
                body=e.response.text[:500],
            )
            raise AIServiceError("AI provider returned an error") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("ai_provider_transport_error", error=str(e))
            raise AIServiceError("AI provider is unreachable") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error("ai_provider_bad_payload", payload=str(data)[:500])
            raise AIServiceError("AI provider returned an unexpected payload") from e

        if not isinstance(content, str):
            raise AIServiceError("AI provider returned an unexpected payload")

        return content

    async def close(self) -> None:
        await self._client.aclose()
