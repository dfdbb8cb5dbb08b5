"""Provider-agnostic structured LLM calls with validation-aware retries."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Sequence, TypeVar

from mirascope import llm
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from .config import Config
from .logging_utils import log_error
from .transport import TransportError, post_json


ModelT = TypeVar("ModelT", bound=BaseModel)

OLLAMA_PROVIDER = "ollama"
_OLLAMA_CHAT_ENDPOINT = "/api/chat"


class LLMProviderError(RuntimeError):
    """Raised when a locally hosted provider is unreachable or answers without content."""


@dataclass(slots=True)
class ValidationFeedback:
    """Retry guidance derived from a failed schema validation."""

    llm_text: str
    issues: Sequence[str]


def _preview(value: Any, *, limit: int = 80) -> str:
    if value is None:
        return "null"
    text = repr(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def inject_validation_feedback(error: ValidationError) -> ValidationFeedback:
    """Turn a pydantic ValidationError into instructions the model can act on."""

    issues: list[str] = []
    for err in error.errors(include_url=False):
        loc = ".".join(str(part) for part in err.get("loc", [])) or "root"
        details = f"{loc}: {err.get('msg', 'validation error')}"
        if err.get("type"):
            details += f" [type={err['type']}]"
        if "input" in err:
            details += f" | received={_preview(err.get('input'))}"
        issues.append(details)

    if not issues:
        issues.append("root: response did not match the expected schema")

    instructions = [
        "Your previous JSON response failed to validate against the required schema.",
        "Return only corrected JSON matching the schema, without code fences.",
        "Issues detected:",
    ]
    instructions.extend(f"- {issue}" for issue in issues)
    return ValidationFeedback(llm_text="\n".join(instructions), issues=issues)


async def call_ollama_chat(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    base_url: str | None = None,
    timeout: float | None = None,
) -> str:
    """Invoke a local Ollama model and return the assistant text."""

    if not user_prompt.strip():
        raise LLMProviderError("Cannot call Ollama with an empty user prompt.")

    messages: list[dict[str, str]] = []
    if system_prompt.strip():
        messages.append({"role": "system", "content": system_prompt.strip()})
    messages.append({"role": "user", "content": user_prompt.strip()})

    url = f"{(base_url or Config.OLLAMA_BASE_URL).rstrip('/')}{_OLLAMA_CHAT_ENDPOINT}"
    payload = {"model": llm_model, "messages": messages, "stream": False, "format": "json"}

    try:
        parsed = await post_json(url, payload, timeout=timeout or Config.LLM_TIMEOUT_SECONDS)
    except TransportError as exc:
        raise LLMProviderError(f"Ollama chat request failed: {exc}") from exc

    content = ((parsed or {}).get("message") or {}).get("content")
    if not content:
        raise LLMProviderError("Ollama response did not include assistant content.")
    return content


async def call_llm_with_retries(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    response_model: type[ModelT],
    max_attempts: int = 3,
    timeout: float | None = None,
    feedback_builder: Callable[[ValidationError], ValidationFeedback] = inject_validation_feedback,
) -> ModelT:
    """Invoke a structured LLM call, retrying only on schema validation failures.

    Validation feedback is appended to the original prompt so the model keeps
    its full context. Timeouts and provider errors propagate immediately; the
    final ValidationError is re-raised once attempts are exhausted.
    """

    system_prompt = system_prompt.strip()
    base_user_prompt = user_prompt.strip()
    timeout = timeout or Config.LLM_TIMEOUT_SECONDS
    use_ollama = llm_provider.lower() == OLLAMA_PROVIDER

    remote_invoke: Callable[[str], Any] | None = None
    if not use_ollama:
        @llm.call(provider=llm_provider, model=llm_model, response_model=response_model)
        async def _invoke(prompt: str) -> str:
            return prompt

        remote_invoke = _invoke

    feedback: ValidationFeedback | None = None
    attempt_number = 0

    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(ValidationError),
        stop=stop_after_attempt(max_attempts),
        reraise=True,
    ):
        with attempt:
            attempt_number += 1
            user_section = base_user_prompt
            if feedback is not None:
                user_section = f"{base_user_prompt}\n\n{feedback.llm_text}"
            try:
                if use_ollama:
                    raw = await asyncio.wait_for(
                        call_ollama_chat(
                            system_prompt=system_prompt,
                            user_prompt=user_section,
                            llm_model=llm_model,
                            timeout=timeout,
                        ),
                        timeout=timeout,
                    )
                    return response_model.model_validate_json(raw)

                combined = "\n\n".join(part for part in (system_prompt, user_section) if part)
                return await asyncio.wait_for(remote_invoke(combined), timeout=timeout)
            except ValidationError as exc:
                feedback = feedback_builder(exc)
                log_error(
                    f"LLM schema validation failed for {response_model.__name__} "
                    f"(attempt {attempt_number}/{max_attempts})."
                )
                raise

    raise RuntimeError("LLM retry mechanism exited unexpectedly")
