"""
AI option extraction service.

Backs ``ai.extract_options`` pipeline nodes with an OpenAI-compatible chat
completions endpoint. The model receives the node prompt and the node
input serialized as JSON, and must answer with ``{"options": [...]}``
where each entry is a string or an object.
"""

from typing import Any

import httpx
import orjson

from trackerbase.core.config import settings
from trackerbase.core.exceptions import AIExtractionError
from trackerbase.core.logging import LoggerMixin

SYSTEM_PROMPT = (
    "You extract option lists from data. Answer with a JSON object of the form "
    '{"options": [...]} where each item is a string or a flat JSON object. '
    "Return at most {max_rows} items and nothing else."
)


class AIOptionExtractor(LoggerMixin):
    """
    Callable ``(prompt, input, max_rows) -> rows`` for pipeline execution.

    Args:
        api_key: Bearer token for the endpoint (default from settings)
        base_url: Base URL of the chat completions API
        model: Model name
        timeout: Request timeout in seconds
        client: Shared HTTP client; a short-lived one is created otherwise
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key or settings.ai_api_key
        self.base_url = (base_url or settings.ai_base_url).rstrip("/")
        self.model = model or settings.ai_model
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self.client = client

    def build_messages(self, prompt: str, source_input: Any, max_rows: int) -> list[dict[str, str]]:
        """Chat messages for one extraction; the input is cut to the prompt budget."""
        try:
            data = orjson.dumps(source_input, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")
        except TypeError:
            data = str(source_input)
        if len(data) > settings.ai_max_prompt_chars:
            data = data[: settings.ai_max_prompt_chars]
        return [
            {"role": "system", "content": SYSTEM_PROMPT.replace("{max_rows}", str(max_rows))},
            {"role": "user", "content": f"{prompt}\n\nData:\n{data}"},
        ]

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        url = f"{self.base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self.client is None:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.post(url, json=payload, headers=headers)
        return await self.client.post(url, json=payload, headers=headers, timeout=self.timeout)

    async def __call__(self, prompt: str, source_input: Any, max_rows: int) -> list[Any]:
        """
        Run one extraction.

        Raises:
            AIExtractionError: When the service is not configured, the
                request fails, or the answer is not an option list
        """
        if not self.api_key:
            raise AIExtractionError("AI extraction is not configured")

        max_rows = max(1, min(max_rows, settings.ai_max_rows))
        payload = {
            "model": self.model,
            "messages": self.build_messages(prompt, source_input, max_rows),
            "response_format": {"type": "json_object"},
            "temperature": 0,
        }

        try:
            response = await self._post(payload)
        except httpx.TimeoutException:
            raise AIExtractionError(f"AI extraction timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            raise AIExtractionError(f"AI extraction request failed: {e}")

        if not response.is_success:
            self.logger.warning(f"AI extraction returned status {response.status_code}")
            raise AIExtractionError(f"AI extraction failed with status {response.status_code}")

        try:
            content = orjson.loads(response.content)["choices"][0]["message"]["content"]
            answer = orjson.loads(content)
        except (orjson.JSONDecodeError, KeyError, IndexError, TypeError):
            raise AIExtractionError("AI extraction returned an unreadable answer")

        rows = answer.get("options") if isinstance(answer, dict) else answer
        if not isinstance(rows, list):
            raise AIExtractionError("AI extraction answer has no options list")

        self.logger.debug(f"AI extraction returned {len(rows)} row(s)")
        return rows[:max_rows]


def get_ai_extractor(client: httpx.AsyncClient | None = None) -> AIOptionExtractor | None:
    """The configured extractor, or None when no API key is set."""
    if not settings.ai_enabled:
        return None
    return AIOptionExtractor(client=client)
