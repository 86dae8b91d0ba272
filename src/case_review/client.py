"""LLM completion client built on the Anthropic SDK."""
import logging

import anthropic
from anthropic import AsyncAnthropic
from pydantic import BaseModel, Field

from .config import LLMSettings, Settings
from .exceptions import ConfigurationError, EmptyResponseError, TransportError


logger = logging.getLogger(__name__)


class Completion(BaseModel):
    """Text and token usage of one completion."""
    text: str
    usage: dict = Field(default_factory=dict)
    model: str | None = None
    finish_reason: str | None = None


class APIClient:
    """Single request/response exchange with the completion endpoint.

    No retries happen here; callers decide how to treat a failure.
    """

    def __init__(self, settings: LLMSettings | None = None):
        self.settings = settings or Settings.from_env().llm
        if not self.settings.configured:
            raise ConfigurationError("LLM_API_URL is not configured")
        if not self.settings.api_token:
            raise ConfigurationError("LLM_API_TOKEN is not configured")
        self.client = AsyncAnthropic(
            base_url=self.settings.base_url,
            auth_token=self.settings.api_token,
            timeout=self.settings.timeout,
            max_retries=0,
        )

    async def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> Completion:
        """Send one system/user prompt pair and return the completion text."""
        model = model or self.settings.model
        max_tokens = max_tokens or self.settings.max_tokens
        temperature = self.settings.temperature if temperature is None else temperature

        logger.debug("Invoking %s (max_tokens=%d, temperature=%.2f)", model, max_tokens, temperature)
        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                extra_body={"temperature": temperature},
            )
        except anthropic.APIStatusError as e:
            raise TransportError("LLM API error", status_code=e.status_code, body=e.response.text) from e
        except anthropic.APIConnectionError as e:
            raise TransportError(f"LLM API unreachable: {e}") from e
        except anthropic.APIError as e:
            raise TransportError(f"LLM API error: {e}") from e

        texts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        if not texts:
            raise EmptyResponseError("LLM API returned no completion content")

        usage = {
            "inputTokens": response.usage.input_tokens,
            "outputTokens": response.usage.output_tokens,
        }
        return Completion(
            text="".join(texts).strip(),
            usage=usage,
            model=response.model,
            finish_reason=response.stop_reason,
        )

    async def close(self) -> None:
        await self.client.close()
