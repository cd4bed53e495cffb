"""Helpers for structured and streamed LLM calls.

Structured calls (biome definitions, NPC lines) go through
``call_llm_with_retries``, which retries only on schema validation failures
and feeds the validation errors back to the model. Free-text calls (panorama
prompt refinement) are exposed as forward-only async streams of text chunks.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Sequence, TypeVar

from mirascope import llm
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from roomweaver.config import Config
from roomweaver.logging_utils import log_error, log_provider


ModelT = TypeVar("ModelT", bound=BaseModel)
LLM_TIMEOUT_SECONDS = 120.0


@dataclass(slots=True)
class ValidationFeedback:
    """Retry guidance for the model plus the individual issues for logging."""

    llm_text: str
    issues: Sequence[str]


def _truncate_preview(value: Any, *, limit: int = 80) -> str:
    if value is None:
        return "null"
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def inject_validation_feedback(error: ValidationError) -> ValidationFeedback:
    """Turn a pydantic ``ValidationError`` into correction instructions.

    Each issue names the dotted field path, the message, the error type and a
    short preview of the rejected input, e.g.
    ``colors.obstacles: Field required [type=missing]``.
    """

    issues: list[str] = []
    for err in error.errors(include_url=False):
        loc = ".".join(str(part) for part in err.get("loc", [])) or "root"
        details = f"{loc}: {err.get('msg', 'validation error')}"
        if err.get("type"):
            details += f" [type={err['type']}]"
        if "input" in err:
            preview = _truncate_preview(err.get("input"))
            if preview:
                details += f" | received={preview}"
        issues.append(details)

    if not issues:
        issues.append("root: response did not match the expected schema")

    instructions = [
        "Your previous JSON response failed to validate against the required schema.",
        "Produce a corrected response that strictly matches the schema.",
        "Return only valid JSON, without explanations or code fences.",
        "Issues detected:",
    ]
    instructions.extend(f"- {issue}" for issue in issues)
    return ValidationFeedback(llm_text="\n".join(instructions), issues=issues)


def _log_validation_failure(
    *,
    model_name: str,
    attempt: int,
    max_attempts: int,
    feedback: ValidationFeedback,
) -> None:
    log_error(
        f"LLM schema validation failed for {model_name} (attempt {attempt}/{max_attempts})."
    )
    for issue in feedback.issues:
        print(f"    - {issue}")


def _combine_prompts(*sections: str) -> str:
    return "\n\n".join(section for section in sections if section)


async def call_llm_with_retries(
    *,
    system_prompt: str,
    user_prompt: str,
    response_model: type[ModelT],
    llm_provider: str | None = None,
    llm_model: str | None = None,
    max_attempts: int = 3,
    timeout: float = LLM_TIMEOUT_SECONDS,
    feedback_builder: Callable[[ValidationError], ValidationFeedback] = inject_validation_feedback,
) -> ModelT:
    """Invoke a structured LLM call with validation-aware retries.

    Only ``ValidationError`` triggers a retry; the feedback from the failed
    attempt is appended to the original prompt so the model keeps its full
    context. Timeouts and provider errors propagate immediately.

    Args:
        system_prompt: Instructions placed before the user prompt
        user_prompt: Request body
        response_model: Pydantic model the response must validate against
        llm_provider: Mirascope provider name (default ``Config.LLM_PROVIDER``)
        llm_model: Model identifier (default ``Config.LLM_MODEL``)
        max_attempts: Total attempts including the first
        timeout: Seconds allowed per attempt

    Raises:
        ValidationError: Every attempt failed validation
        asyncio.TimeoutError: An attempt exceeded ``timeout``
    """

    provider = llm_provider or Config.LLM_PROVIDER
    model = llm_model or Config.LLM_MODEL
    system_prompt = system_prompt.strip()
    base_user_prompt = user_prompt.strip()

    @llm.call(provider=provider, model=model, response_model=response_model)
    async def _invoke(prompt: str) -> str:
        return prompt

    feedback_payload: ValidationFeedback | None = None
    attempt_number = 0

    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(ValidationError),
        stop=stop_after_attempt(max_attempts),
        reraise=True,
    ):
        with attempt:
            attempt_number += 1
            if attempt_number > 1:
                log_provider(
                    f"LLM retry {attempt_number}/{max_attempts} for {response_model.__name__};"
                    " attempting schema correction."
                )
            user_section = _combine_prompts(
                base_user_prompt,
                feedback_payload.llm_text if feedback_payload is not None else "",
            )
            try:
                return await asyncio.wait_for(
                    _invoke(_combine_prompts(system_prompt, user_section)),
                    timeout=timeout,
                )
            except ValidationError as exc:
                feedback_payload = feedback_builder(exc)
                _log_validation_failure(
                    model_name=response_model.__name__,
                    attempt=attempt_number,
                    max_attempts=max_attempts,
                    feedback=feedback_payload,
                )
                raise
            except asyncio.TimeoutError:
                log_error(
                    f"LLM call timed out after {int(timeout)}s for {response_model.__name__}."
                )
                raise

    raise RuntimeError("LLM retry mechanism exited unexpectedly")


async def stream_llm_text(
    prompt: str,
    *,
    llm_provider: str | None = None,
    llm_model: str | None = None,
) -> AsyncIterator[str]:
    """Stream a free-text completion as successive text chunks."""

    @llm.call(provider=llm_provider or Config.LLM_PROVIDER, model=llm_model or Config.LLM_MODEL, stream=True)
    async def _invoke(text: str) -> str:
        return text

    stream = await _invoke(prompt)
    async for chunk, _ in stream:
        if chunk.content:
            yield chunk.content


async def collect_text_stream(chunks: AsyncIterator[str]) -> str:
    """Concatenate a chunk stream in arrival order and strip the result."""
    parts: list[str] = []
    async for chunk in chunks:
        if chunk:
            parts.append(chunk)
    return "".join(parts).strip()


__all__ = [
    "LLM_TIMEOUT_SECONDS",
    "ValidationFeedback",
    "call_llm_with_retries",
    "collect_text_stream",
    "inject_validation_feedback",
    "stream_llm_text",
]
