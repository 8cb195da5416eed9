from __future__ import annotations
import os, asyncio, json, logging
from typing import Any, Dict, Optional
from fastapi import Request
from openai import (
    OpenAI, APIConnectionError, AuthenticationError, RateLimitError, OpenAIError,
)

from nightnotes.errors import (
    ParseError, UpstreamAuthError, UpstreamOtherError, UpstreamRateLimitError,
)

logger = logging.getLogger(__name__)

MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
TIMEOUT = float(os.getenv("OPENAI_TIMEOUT_S", "15"))


def parse_json_object(raw: str) -> Dict[str, Any]:
    """Decode one JSON object, tolerating code fences or prose around it."""
    text = (raw or "").strip()
    if text.startswith("```json"):
        text = text[7:].strip()
    elif text.startswith("```"):
        text = text[3:].strip()
    if text.endswith("```"):
        text = text[:-3].strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        text = text[start:end + 1]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError("Failed to parse analysis") from e
    if not isinstance(data, dict):
        raise ParseError("Failed to parse analysis")
    return data


class TextGenerator:
    """
    One blocking chat completion per call, run on a worker thread.

    The SDK's own retries are disabled; every failure is mapped to one of
    the upstream error kinds and surfaces to the caller immediately.
    """

    def __init__(self, client: Optional[OpenAI] = None, model: str = MODEL, timeout: float = TIMEOUT):
        self._client = client
        self.model = model
        self.timeout = timeout

    def _get_client(self) -> OpenAI:
        if self._client is None:
            try:
                self._client = OpenAI(max_retries=0)  # OPENAI_API_KEY from env
            except OpenAIError as e:
                logger.error("OpenAI client could not be created: %s", e)
                raise UpstreamAuthError() from e
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        json_mode: bool = False,
    ) -> str:
        client = self._get_client()
        extra: Dict[str, Any] = {}
        if json_mode:
            extra["response_format"] = {"type": "json_object"}

        def _call():
            return client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                max_tokens=max_tokens,
                timeout=self.timeout,
                **extra,
            )

        try:
            resp = await asyncio.to_thread(_call)
        except AuthenticationError as e:
            logger.warning("OpenAI authentication failed: %s", e)
            raise UpstreamAuthError() from e
        except RateLimitError as e:
            logger.warning("OpenAI rate limited: %s", e)
            raise UpstreamRateLimitError() from e
        except (APIConnectionError, OpenAIError) as e:
            logger.warning("OpenAI request failed: %s", e)
            raise UpstreamOtherError() from e

        try:
            content = resp.choices[0].message.content
        except (IndexError, AttributeError) as e:
            raise UpstreamOtherError() from e
        if not isinstance(content, str) or not content.strip():
            logger.warning("OpenAI returned no text content")
            raise UpstreamOtherError()
        return content

    async def complete_json(self, system_prompt: str, user_message: str, *, max_tokens: int) -> Dict[str, Any]:
        raw = await self.complete(system_prompt, user_message, max_tokens=max_tokens, json_mode=True)
        return parse_json_object(raw)


def get_text_generator(request: Request) -> TextGenerator:
    """FastAPI dependency; the instance is built once in the app lifespan."""
    return request.app.state.text_generator
