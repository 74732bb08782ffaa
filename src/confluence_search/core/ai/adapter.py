"""Chat-completion adapter for OpenAI compatible endpoints."""

import asyncio
from collections.abc import Sequence
from typing import Any

import requests
from loguru import logger

from confluence_search.errors import NetworkError
from confluence_search.models.cache import Message


class OpenAIChatAdapter:
    """Send chat requests to an OpenAI compatible ``/chat/completions`` URL.

    Failures are reported as NetworkError and never retried here.
    """

    def __init__(self, *, api_key: str, api_url: str, timeout: float = 120) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.sess = requests.Session()
        self.sess.headers["Authorization"] = f"Bearer {api_key}"

    def _post(self, payload: dict[str, Any]) -> str:
        logger.info("AI request -> POST {}", self.api_url)
        logger.debug("AI payload: model {}, {} messages", payload["model"], len(payload["messages"]))
        try:
            r = self.sess.post(self.api_url, json=payload, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            msg = f"AI request failed: {e}"
            raise NetworkError(msg) from e
        except ValueError as e:
            msg = f"AI response is not JSON: {e}"
            raise NetworkError(msg) from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            error = data.get("error") if isinstance(data, dict) else None
            msg = f"AI response has no answer: {error or e!r}"
            raise NetworkError(msg) from e
        return content or "[No response]"

    async def chat(self, messages: Sequence[Message], *, model: str) -> str:
        payload = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        return await asyncio.to_thread(self._post, payload)

    async def request(self, *, system_prompt: str, user_prompt: str, model: str) -> str:
        return await self.chat(
            [Message(role="system", content=system_prompt), Message(role="user", content=user_prompt)],
            model=model,
        )
