"""
Thin litellm wrapper shared by the model-backed helpers.

The model string is in litellm's ``provider/model`` form, so switching from
Gemini to any other vision-capable provider is a settings change.
"""

from typing import Any

import litellm
import structlog

logger = structlog.get_logger(__name__)


class LLMEngine:
    """Chat-completion client for any litellm provider."""

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        """
        Args:
            model: Model identifier in litellm format (e.g. "gemini/gemini-2.5-flash")
            temperature: Sampling temperature (0.0-1.0)
            api_key: Optional API key for the provider
            timeout: Request timeout in seconds
        """
        self.model = model
        self.temperature = temperature
        self.api_key = api_key
        self.timeout = timeout
        logger.info("llm_engine_initialized", model=model, temperature=temperature)

    def _kwargs(self, messages: list[dict[str, Any]]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.timeout:
            kwargs["timeout"] = self.timeout
        return kwargs

    def complete(self, messages: list[dict[str, Any]]) -> str:
        """
        Run one completion and return the text of the first choice.

        Raises:
            litellm.AuthenticationError: Missing or invalid API key
            litellm.APIError: Provider API failure
        """
        logger.debug("llm_call_started", model=self.model, message_count=len(messages))
        try:
            response = litellm.completion(**self._kwargs(messages))
        except litellm.AuthenticationError as e:
            logger.error(
                "llm_authentication_error",
                model=self.model,
                error=str(e),
                hint="Check API key environment variable",
            )
            raise
        except litellm.APIError as e:
            logger.error(
                "llm_api_error",
                model=self.model,
                error=str(e),
                provider=self.model.split("/")[0] if "/" in self.model else "unknown",
            )
            raise
        content = response.choices[0].message.content or ""
        logger.info(
            "llm_call_completed", model=self.model, response_length=len(content)
        )
        return content

    async def acomplete(self, messages: list[dict[str, Any]]) -> str:
        """Async variant of :meth:`complete`."""
        logger.debug("llm_call_started", model=self.model, message_count=len(messages))
        try:
            response = await litellm.acompletion(**self._kwargs(messages))
        except litellm.APIError as e:
            logger.error("llm_api_error", model=self.model, error=str(e))
            raise
        content = response.choices[0].message.content or ""
        logger.info(
            "llm_call_completed", model=self.model, response_length=len(content)
        )
        return content
