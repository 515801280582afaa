"""Memory summarization through OpenAI chat completions."""

import httpx
import openai

from coach_memory.core.base import AIServiceErrorDetails, ErrorLevel
from coach_memory.core.circuit_breaker import CircuitBreaker
from coach_memory.core.decorators import with_error_handling
from coach_memory.core.errors import (
    AuthenticationError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
)
from coach_memory.core.logging import get_logger

logger = get_logger(__name__)

BASE_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise, meaningful summaries of journal entries "
    "and chat messages. Create a summary that captures the key emotions, events, and insights "
    "in 1-2 sentences."
)

PERSONALIZED_SUFFIX = (
    ' Refer to the author by their first name "{name}" instead of using generic terms like '
    '"the writer", "the author", or "the user". Make it feel personal by using their first name.'
)

USER_PROMPT = (
    "Please summarize the following text in 1-2 sentences, focusing on the key emotions, "
    "events, and insights:\n\n{content}"
)


def build_system_prompt(user_name: str | None = None) -> str:
    if not user_name:
        return BASE_SYSTEM_PROMPT
    return BASE_SYSTEM_PROMPT + PERSONALIZED_SUFFIX.format(name=user_name)


class OpenAISummarizationService:
    """Summarizes memory content in one or two sentences.

    When a first name is given the summary refers to the author by it, which
    is what the personalization pass checks for. Retries are left to the
    maintenance passes, so the SDK client is built with ``max_retries=0``.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        max_tokens: int = 100,
        temperature: float = 0.7,
        timeout_seconds: float = 30.0,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        if not api_key:
            raise AuthenticationError(
                message="OpenAI API key not configured",
                details=self._details("initialization"),
            )
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self.client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
            http_client=http_client,
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            name="openai_chat",
            failure_threshold=5,
            recovery_timeout=60.0,
            expected_exception_types=(ProviderUnavailableError,),
        )

    def _details(self, operation: str, status_code: int | None = None) -> AIServiceErrorDetails:
        return AIServiceErrorDetails(
            source="OpenAISummarizationService",
            operation=operation,
            service_name="OpenAI",
            endpoint="/chat/completions",
            status_code=status_code,
            model_name=getattr(self, "model", None),
            max_tokens=getattr(self, "max_tokens", None),
            temperature=getattr(self, "temperature", None),
        )

    async def _complete(self, text: str, user_name: str | None) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": build_system_prompt(user_name)},
                    {"role": "user", "content": USER_PROMPT.format(content=text)},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except openai.RateLimitError as e:
            raise RateLimitError(
                message="Rate limit exceeded for summarization API",
                details=self._details("summarize", status_code=e.status_code),
            ) from e
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(
                message=f"Summarization timed out after {self.timeout_seconds}s",
                details=self._details("summarize", status_code=408),
            ) from e
        except openai.APIStatusError as e:
            raise ProviderUnavailableError(
                message=f"Summarization request failed with status {e.status_code}",
                details=self._details("summarize", status_code=e.status_code),
            ) from e
        except openai.APIError as e:
            raise ProviderUnavailableError(
                message=f"Summarization request failed: {e!s}",
                details=self._details("summarize"),
            ) from e

        content = response.choices[0].message.content if response.choices else None
        summary = (content or "").strip()
        if not summary:
            raise ProviderUnavailableError(
                message="Summarization returned empty output",
                details=self._details("summarize"),
            )
        return summary

    @with_error_handling(error_level=ErrorLevel.WARNING)
    async def summarize(self, text: str, user_name: str | None = None) -> str:
        """Return a one or two sentence summary of ``text``.

        Raises:
            ProviderUnavailableError: On any provider failure, including an
                open circuit and empty output
        """
        summary = await self._circuit_breaker.call_async(self._complete, text, user_name)
        logger.debug(
            f"Generated {'personalized' if user_name else 'generic'} summary",
            summary_length=len(summary),
        )
        return summary

    async def close(self) -> None:
        await self.client.close()
