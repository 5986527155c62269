"""LLM adapter for text completion: OpenAI-compatible and Anthropic APIs."""

import asyncio

import httpx

from cinerank.config import config
from cinerank.logging import get_logger

logger = get_logger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_TIMEOUT = 60.0
BASE_BACKOFF = 1.0


class LLMDisabledError(Exception):
    """Raised when LLM is disabled but generation is attempted."""


class LLMError(Exception):
    """Base exception for LLM API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LLMRateLimitError(LLMError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int | None = None):
        super().__init__("Rate limit exceeded", status_code=429)
        self.retry_after = retry_after


def _backoff(attempt: int) -> float:
    return BASE_BACKOFF * (2 ** (attempt - 1))


def _error_message(response: httpx.Response) -> str:
    try:
        error_data = response.json()
        return error_data.get("error", {}).get("message", f"HTTP {response.status_code}")
    except (ValueError, AttributeError):
        return f"HTTP {response.status_code}"


def _failure_error(response: httpx.Response, provider: str) -> LLMError:
    if response.status_code == 429:
        retry_after = response.headers.get("retry-after")
        return LLMRateLimitError(retry_after=int(retry_after) if retry_after else None)

    if response.status_code >= 500:
        return LLMError(
            f"{provider} server error: {response.status_code}",
            status_code=response.status_code,
        )

    return LLMError(_error_message(response), status_code=response.status_code)


async def _call_openai(
    client: httpx.AsyncClient,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int,
    temperature: float,
) -> str:
    """Call an OpenAI-compatible chat completions endpoint."""
    headers = {
        "Authorization": f"Bearer {config.openai_api_key}",
        "Content-Type": "application/json",
    }
    payload = {
        "model": config.openai_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "max_tokens": max_tokens,
        "temperature": temperature,
    }

    response = await client.post(config.openai_api_url, headers=headers, json=payload)

    if response.status_code == 200:
        data = response.json()
        choices = data.get("choices", [])
        if choices:
            content = choices[0].get("message", {}).get("content", "")
            logger.debug(f"OpenAI tokens: {data.get('usage', {}).get('total_tokens', 'N/A')}")
            return content.strip()
        raise LLMError("Empty response from OpenAI")

    raise _failure_error(response, "OpenAI")


async def _call_anthropic(
    client: httpx.AsyncClient,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int,
    temperature: float,
) -> str:
    """Call Anthropic Messages API."""
    headers = {
        "x-api-key": config.anthropic_api_key or "",
        "anthropic-version": "2023-06-01",
        "Content-Type": "application/json",
    }
    payload = {
        "model": config.anthropic_model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "system": system_prompt,
        "messages": [{"role": "user", "content": user_prompt}],
    }

    response = await client.post(ANTHROPIC_API_URL, headers=headers, json=payload)

    if response.status_code == 200:
        data = response.json()
        text_parts = [
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        ]
        usage = data.get("usage", {})
        logger.debug(
            f"Anthropic tokens: in={usage.get('input_tokens', '?')}, "
            f"out={usage.get('output_tokens', '?')}"
        )
        return "\n".join(text_parts).strip()

    raise _failure_error(response, "Anthropic")


async def generate_text(
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 400,
    temperature: float = 0.6,
) -> str:
    """Generate text using the configured LLM provider.

    Args:
        system_prompt: System instructions for the model
        user_prompt: User message/request
        max_tokens: Maximum tokens in response
        temperature: Sampling temperature

    Returns:
        Generated text

    Raises:
        LLMDisabledError: If LLM is disabled or the provider key is missing
        LLMError: On API error after the configured attempts
    """
    if not config.llm_enabled:
        raise LLMDisabledError("LLM is disabled in configuration")

    if config.llm_provider == "anthropic":
        if not config.anthropic_api_key:
            raise LLMDisabledError("ANTHROPIC_API_KEY is not configured")
        call_fn = _call_anthropic
        provider_label = f"Anthropic/{config.anthropic_model}"
    else:
        if not config.openai_api_key:
            raise LLMDisabledError("OPENAI_API_KEY is not configured")
        call_fn = _call_openai
        provider_label = f"OpenAI/{config.openai_model}"

    attempts = config.llm_max_retries
    last_error: Exception | None = None

    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
        for attempt in range(1, attempts + 1):
            try:
                return await call_fn(client, system_prompt, user_prompt, max_tokens, temperature)
            except LLMRateLimitError as e:
                last_error, delay = e, e.retry_after or _backoff(attempt)
            except LLMError as e:
                if not (e.status_code and e.status_code >= 500):
                    raise
                last_error, delay = e, _backoff(attempt)
            except httpx.RequestError as e:
                last_error, delay = e, _backoff(attempt)

            logger.warning(
                f"{provider_label} call failed ({last_error!r}), attempt {attempt}/{attempts}"
            )
            if attempt < attempts:
                await asyncio.sleep(delay)

    raise LLMError(f"Completion failed ({provider_label}): {last_error}")


class LLMCompletionClient:
    """Completion client backed by :func:`generate_text`."""

    def __init__(self, max_tokens: int = 400, temperature: float = 0.6) -> None:
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(self, system_instruction: str, user_prompt: str) -> str:
        return await generate_text(
            system_instruction,
            user_prompt,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
