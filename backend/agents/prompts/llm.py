"""
Unified LLM calling interface.

Two entry points, both provider-agnostic (OpenAI-compatible gateway or Anthropic,
selected by settings.LLM_PROVIDER):

- call_llm: one request/response completion, returned as an LLMResult
- open_chat_stream: starts a streaming completion and yields text deltas

Example:
    result = await call_llm(
        system_message="You are a financial analyst.",
        user_message=build_analysis_user_prompt(...),
        task="report_analysis",
    )
    if result.ok:
        text = result.data
    else:
        print(result.status_code, result.error)

Gateway failures never escape call_llm; they come back on the result with the
upstream status code so callers can tell rate limits (429) and exhausted
credits (402) from other failures. open_chat_stream raises LLMGatewayError
before the first delta instead, so the HTTP layer can still pick a status.
"""

from typing import Dict, Any, List, Optional, AsyncIterator
from pydantic import BaseModel, Field
import logging

import anthropic
import openai

from config.settings import settings
from config.llm_models import get_task_config, supports_temperature, uses_max_completion_tokens
from config.timeout_settings import get_timeout_for_operation
from exceptions import LLMGatewayError

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

class LLMUsage(BaseModel):
    """Token usage from LLM call."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResult(BaseModel):
    """Result from a single LLM call."""
    data: Optional[str] = Field(default=None, description="Response text")
    error: Optional[str] = Field(default=None, description="Error message if call failed")
    status_code: Optional[int] = Field(default=None, description="Upstream HTTP status when the gateway rejected the call")
    model: Optional[str] = None
    usage: LLMUsage = Field(default_factory=LLMUsage)

    @property
    def ok(self) -> bool:
        """True if call succeeded (no error)."""
        return self.error is None


# =============================================================================
# Provider plumbing
# =============================================================================

def _openai_client(timeout: int) -> openai.AsyncOpenAI:
    return openai.AsyncOpenAI(
        api_key=settings.AI_GATEWAY_API_KEY,
        base_url=settings.AI_GATEWAY_URL,
        timeout=timeout,
        max_retries=0,
    )


def _anthropic_client(timeout: int) -> anthropic.AsyncAnthropic:
    return anthropic.AsyncAnthropic(
        api_key=settings.ANTHROPIC_API_KEY,
        timeout=timeout,
        max_retries=0,
    )


def _openai_params(model: str, task_config: dict) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if task_config.get("temperature") is not None and supports_temperature(model):
        params["temperature"] = task_config["temperature"]
    if task_config.get("max_tokens"):
        key = "max_completion_tokens" if uses_max_completion_tokens(model) else "max_tokens"
        params[key] = task_config["max_tokens"]
    return params


def _status_of(error: Exception) -> Optional[int]:
    if isinstance(error, (openai.APIStatusError, anthropic.APIStatusError)):
        return error.status_code
    return None


# =============================================================================
# Main Interface
# =============================================================================

async def call_llm(
    system_message: str,
    user_message: str,
    task: str = "report_analysis",
) -> LLMResult:
    """
    Single text completion.

    Args:
        system_message: System prompt
        user_message: User prompt
        task: Key into config.llm_models.TASK_CONFIGS (temperature, max tokens)

    Returns:
        LLMResult with data set on success, or error/status_code on failure
    """
    task_config = get_task_config(task)
    model = settings.llm_model

    if not settings.llm_api_key:
        logger.error(f"LLM API key not configured for provider {settings.LLM_PROVIDER}")
        return LLMResult(error=LLMGatewayError.NOT_CONFIGURED, status_code=500, model=model)

    timeout = get_timeout_for_operation("llm_analysis")
    try:
        if settings.LLM_PROVIDER == "anthropic":
            client = _anthropic_client(timeout)
            kwargs: Dict[str, Any] = {}
            if task_config.get("temperature") is not None:
                kwargs["temperature"] = task_config["temperature"]
            response = await client.messages.create(
                model=model,
                system=system_message,
                messages=[{"role": "user", "content": user_message}],
                max_tokens=task_config.get("max_tokens") or 4096,
                **kwargs,
            )
            text = "".join(block.text for block in response.content if block.type == "text")
            usage = LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )
        else:
            client = _openai_client(timeout)
            response = await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_message},
                    {"role": "user", "content": user_message},
                ],
                **_openai_params(model, task_config),
            )
            text = response.choices[0].message.content if response.choices else ""
            usage = LLMUsage(
                prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
                completion_tokens=response.usage.completion_tokens if response.usage else 0,
                total_tokens=response.usage.total_tokens if response.usage else 0,
            )
    except (openai.APIError, anthropic.APIError) as e:
        status = _status_of(e)
        logger.error(f"LLM gateway error ({settings.LLM_PROVIDER}, status={status}): {e}")
        return LLMResult(error=str(e), status_code=status or 500, model=model)

    logger.info(f"LLM call complete: model={model}, tokens={usage.total_tokens}")
    return LLMResult(data=text or "", model=model, usage=usage)


async def open_chat_stream(
    system_message: str,
    messages: List[Dict[str, str]],
    task: str = "data_chat",
    fallback_error: str = "Chat service unavailable",
) -> AsyncIterator[str]:
    """
    Start a streaming chat completion.

    The upstream request is made before this coroutine returns, so gateway
    rejections surface here as LLMGatewayError (429, 402, else 500).

    Returns:
        Async iterator over text deltas
    """
    if not settings.llm_api_key:
        raise LLMGatewayError(LLMGatewayError.NOT_CONFIGURED)

    task_config = get_task_config(task)
    model = settings.llm_model
    timeout = get_timeout_for_operation("llm_chat")

    try:
        if settings.LLM_PROVIDER == "anthropic":
            client = _anthropic_client(timeout)
            stream = await client.messages.create(
                model=model,
                system=system_message,
                messages=messages,
                max_tokens=task_config.get("max_tokens") or 4096,
                stream=True,
            )
            return _anthropic_deltas(stream)

        client = _openai_client(timeout)
        stream = await client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system_message}, *messages],
            stream=True,
            **_openai_params(model, task_config),
        )
        return _openai_deltas(stream)
    except (openai.APIError, anthropic.APIError) as e:
        status = _status_of(e)
        logger.error(f"LLM gateway stream error ({settings.LLM_PROVIDER}, status={status}): {e}")
        raise LLMGatewayError.from_status(status or 500, fallback_error)


async def _openai_deltas(stream) -> AsyncIterator[str]:
    async for chunk in stream:
        if not chunk.choices:
            continue
        content = chunk.choices[0].delta.content
        if content:
            yield content


async def _anthropic_deltas(stream) -> AsyncIterator[str]:
    async for event in stream:
        if event.type == "content_block_delta" and getattr(event.delta, "type", None) == "text_delta":
            yield event.delta.text
