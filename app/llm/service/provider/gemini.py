import json
from typing import AsyncGenerator

import httpx

from app.core.logger import get_logger
from app.llm.entity.llm import LLMRequest, LLMResponse, Provider, Usage
from app.llm.service.errors import LLMError, classify_upstream_error
from .base_provider import BaseProvider


class GeminiProvider(BaseProvider):
    """Handles Google Gemini models through the public REST API."""

    provider = Provider.GOOGLE

    def __init__(
        self,
        api_key: str | None,
        endpoint: str = "https://generativelanguage.googleapis.com",
        timeout: float = 60.0,
    ):
        super().__init__(api_key)
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._logger = get_logger("GeminiProvider")

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=self.timeout,
            headers={"x-goog-api-key": self.api_key},
        )

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    def _payload(self, request: LLMRequest) -> dict:
        temperature, max_tokens = self._params(request)
        contents = []
        for m in request.conversation():
            role = "model" if m.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": m.content}]})

        # No system field here: system text is prepended to the first user turn
        system = request.system_text()
        if system:
            first_user = next((c for c in contents if c["role"] == "user"), None)
            if first_user is None:
                contents.insert(0, {"role": "user", "parts": [{"text": system}]})
            else:
                first_user["parts"][0]["text"] = f"{system}\n\n{first_user['parts'][0]['text']}"

        return {
            "contents": contents,
            "generationConfig": {
                "temperature": float(temperature),
                "maxOutputTokens": int(max_tokens),
            },
        }

    @staticmethod
    def _candidate_text(chunk: dict) -> str:
        candidates = chunk.get("candidates", [])
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(p.get("text", "") for p in parts if "text" in p)

    @staticmethod
    def _error_from_response(status: int, body: str) -> httpx.HTTPStatusError:
        request = httpx.Request("POST", "gemini")
        response = httpx.Response(status, request=request, text=body)
        return httpx.HTTPStatusError(f"Gemini API error {status}: {body[:300]}", request=request, response=response)

    async def generate(self, request: LLMRequest) -> LLMResponse:
        client = self._get_client()
        url = f"/v1beta/models/{request.model}:generateContent"
        try:
            res = await client.post(url, json=self._payload(request))
            if res.status_code != 200:
                raise self._error_from_response(res.status_code, res.text)
            data = res.json()
        except LLMError:
            raise
        except Exception as e:
            raise classify_upstream_error(self.name, e) from e

        meta = data.get("usageMetadata", {})
        return LLMResponse(
            text=self._candidate_text(data),
            usage=Usage(
                prompt_tokens=meta.get("promptTokenCount", 0),
                completion_tokens=meta.get("candidatesTokenCount", 0),
            ),
        )

    async def stream(self, request: LLMRequest) -> AsyncGenerator[str, None]:
        client = self._get_client()
        url = f"/v1beta/models/{request.model}:streamGenerateContent"
        try:
            async with client.stream("POST", url, params={"alt": "sse"}, json=self._payload(request)) as resp:
                if resp.status_code != 200:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    self._logger.error(f"Gemini API error: status={resp.status_code}")
                    raise self._error_from_response(resp.status_code, body)
                async for raw_line in resp.aiter_lines():
                    line = raw_line.strip()
                    if not line.startswith("data:"):
                        continue
                    line = line[len("data:"):].strip()
                    if line == "[DONE]":
                        break
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        self._logger.warning(f"Skipping non-JSON stream line: {line[:80]}")
                        continue
                    text = self._candidate_text(chunk)
                    if text:
                        yield text
        except LLMError:
            raise
        except Exception as e:
            raise classify_upstream_error(self.name, e) from e
