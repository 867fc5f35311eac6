"""Model fetch layer."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import openai
from loguru import logger

from ..cancellation import CancellationToken
from .types import FetchResponse, FetchResponseType, ToolCall


class ModelClient(Protocol):
    async def fetch(
        self,
        messages: list[dict[str, Any]],
        *,
        tools: list[dict[str, Any]],
        token: CancellationToken,
    ) -> FetchResponse: ...


class OpenAIModelClient:
    """Chat-completions client that reports every failure as a `FetchResponse`."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        max_tokens: int = 4096,
        timeout_seconds: float | None = None,
        client: Any = None,
    ) -> None:
        self._model = model
        self._max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds
        self._client = client or openai.AsyncOpenAI(api_key=api_key, base_url=api_base)

    @property
    def model(self) -> str:
        return self._model

    async def fetch(
        self,
        messages: list[dict[str, Any]],
        *,
        tools: list[dict[str, Any]],
        token: CancellationToken,
    ) -> FetchResponse:
        request_kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": self._max_tokens,
        }
        if tools:
            request_kwargs["tools"] = tools
            request_kwargs["parallel_tool_calls"] = False

        call = asyncio.ensure_future(self._create(request_kwargs))
        cancelled = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({call, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
        if call not in done:
            call.cancel()
            await asyncio.wait({call})
            return FetchResponse.failure("The request was cancelled.", FetchResponseType.CANCELED)
        return call.result()

    async def _create(self, request_kwargs: dict[str, Any]) -> FetchResponse:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                completion = await self._client.chat.completions.create(**request_kwargs)
        except TimeoutError:
            return FetchResponse.failure(
                f"no response within {self._timeout_seconds}s", FetchResponseType.NETWORK_ERROR
            )
        except openai.RateLimitError as exc:
            logger.warning("model.call.rate_limited model={} error={}", self._model, exc)
            return FetchResponse.failure(_error_message(exc), FetchResponseType.RATE_LIMITED)
        except openai.APIConnectionError as exc:
            logger.warning("model.call.network_error model={} error={}", self._model, exc)
            return FetchResponse.failure(_error_message(exc), FetchResponseType.NETWORK_ERROR)
        except openai.BadRequestError as exc:
            logger.warning("model.call.bad_request model={} error={}", self._model, exc)
            return FetchResponse.failure(_error_message(exc), FetchResponseType.BAD_REQUEST)
        except Exception as exc:
            logger.exception("model.call.error model={}", self._model)
            return FetchResponse.failure(_error_message(exc))

        return _from_completion(completion)


def _from_completion(completion: Any) -> FetchResponse:
    if not completion.choices:
        return FetchResponse.failure("The model returned no choices.", FetchResponseType.UNKNOWN)

    choice = completion.choices[0]
    if choice.finish_reason == "length":
        return FetchResponse.failure("The response exceeded the token limit.", FetchResponseType.LENGTH)

    message = choice.message
    tool_calls = tuple(
        ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
        for call in (message.tool_calls or [])
    )
    return FetchResponse.success(message.content or "", tool_calls)


def _error_message(exc: Exception) -> str:
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or type(exc).__name__
