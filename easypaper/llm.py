"""Provider adapters — one interface, two wire formats.

``create_adapter`` maps a ``ModelConfig`` to its adapter class by family:

* ``native`` → ``NativeDocumentAdapter``: the raw PDF travels inline
  (base64) to Gemini's ``generateContent`` endpoint over ``httpx``, and the
  provider enforces ``prompts.RESPONSE_SCHEMA``.
* ``chat`` → ``ChatCompletionAdapter``: text is extracted locally with
  ``parser.extract_text`` and sent through the openai SDK to any
  OpenAI-compatible ``/chat/completions`` endpoint (DeepSeek, Qwen, Doubao).

Every adapter exposes ``extract(document)`` and ``analyze(payload, ...)``.
``analyze`` sends exactly one request and never retries; retry policy belongs
to the caller.  Both adapters validate the reply against ``PaperAnalysis``.
"""

import base64
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Union

import httpx
import openai as _openai
from openai.types.chat import ChatCompletion
from pydantic import ValidationError

from easypaper.models import (
    Config,
    ConfigurationError,
    ModelConfig,
    PaperAnalysis,
    ParseError,
    ProviderError,
    SourceDocument,
)
from easypaper.parser import extract_text
from easypaper.prompts import (
    RESPONSE_SCHEMA,
    SYSTEM_PROMPT,
    build_document_prompt,
    build_text_prompt,
)

logger = logging.getLogger(__name__)

Payload = Union[SourceDocument, str]

_EMPTY_REPLY = "Empty response from AI provider."


# ---------------------------------------------------------------------------
# Base adapter
# ---------------------------------------------------------------------------


class ProviderAdapter:
    """Common behaviour shared by both provider families.

    Attributes:
        model_config: Static provider description (name, URL, default model).
        config:       Runtime settings (temperature, budgets, timeout).
    """

    def __init__(
        self,
        model_config: ModelConfig,
        config: Config,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model_config = model_config
        self.config = config
        self._http_client = http_client

    def resolve_model(self, api_key: str | None, endpoint_id: str | None = None) -> str:
        """Check credentials and return the model id to request.

        Raises:
            ConfigurationError: if the API key is missing, or the provider
                needs an endpoint id and none was given.
        """
        name = self.model_config.name
        if not api_key:
            raise ConfigurationError(f"{name} API Key is required.")
        model_id = endpoint_id or self.model_config.model_id
        if not model_id:
            raise ConfigurationError(f"{name} requires an Endpoint ID (Model ID).")
        return model_id

    async def extract(self, document: SourceDocument) -> Payload:
        raise NotImplementedError

    async def analyze(
        self,
        payload: Payload,
        api_key: str | None,
        endpoint_id: str | None = None,
    ) -> PaperAnalysis:
        raise NotImplementedError

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the injected client, or a short-lived one owned by this call."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.config.timeout_s) as client:
            yield client


# ---------------------------------------------------------------------------
# Native multimodal (Gemini)
# ---------------------------------------------------------------------------


class NativeDocumentAdapter(ProviderAdapter):
    """Sends the PDF bytes themselves; the provider reads the document."""

    async def extract(self, document: SourceDocument) -> SourceDocument:
        return document

    async def analyze(
        self,
        payload: Payload,
        api_key: str | None,
        endpoint_id: str | None = None,
    ) -> PaperAnalysis:
        model_id = self.resolve_model(api_key, endpoint_id)
        if not isinstance(payload, SourceDocument):
            raise TypeError("native providers expect the source document bytes")

        url = f"{self.model_config.base_url}/models/{model_id}:generateContent"
        body = {
            "contents": [
                {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": payload.mime_type,
                                "data": base64.b64encode(payload.data).decode("ascii"),
                            }
                        },
                        {"text": build_document_prompt(self.config.response_language)},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
                "temperature": self.config.temperature,
            },
        }

        _log_call(model_id, self.model_config.base_url)
        t0 = time.monotonic()
        try:
            async with self._http() as client:
                response = await client.post(
                    url, json=body, headers={"x-goog-api-key": api_key}
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.model_config.name} request failed: {e}") from e

        if not response.is_success:
            raise ProviderError(
                _error_message(_json_or_none(response), response.reason_phrase),
                status=response.status_code,
            )

        text = _candidate_text(_json_or_none(response))
        if not text:
            raise ProviderError(_EMPTY_REPLY)
        _log_reply(t0, text)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Failed to parse AI response as JSON: {e}") from e
        return validate_analysis(data)


def _candidate_text(body: object) -> str:
    """Join the text parts of the first candidate of a generateContent reply."""
    if not isinstance(body, dict):
        return ""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    candidate = candidates[0]
    content = candidate.get("content") if isinstance(candidate, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


# ---------------------------------------------------------------------------
# OpenAI-compatible chat
# ---------------------------------------------------------------------------


class ChatCompletionAdapter(ProviderAdapter):
    """Extracts text locally and posts it to ``{base_url}/chat/completions``."""

    async def extract(self, document: SourceDocument) -> str:
        return extract_text(document.data, document.filename)

    async def analyze(
        self,
        payload: Payload,
        api_key: str | None,
        endpoint_id: str | None = None,
    ) -> PaperAnalysis:
        model_id = self.resolve_model(api_key, endpoint_id)
        if not isinstance(payload, str):
            raise TypeError("chat providers expect extracted text")

        max_chars = self.config.max_chars
        if len(payload) > max_chars:
            logger.warning(
                "Paper text is too long (%s chars); truncating to %s",
                f"{len(payload):,}",
                f"{max_chars:,}",
            )
        prompt = build_text_prompt(payload, self.config.response_language, max_chars)

        client = self._create_client(api_key)
        _log_call(model_id, self.model_config.base_url)
        t0 = time.monotonic()
        try:
            completion = await client.chat.completions.create(
                model=model_id,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.config.temperature,
                response_format={"type": "json_object"},
            )
        except _openai.APIStatusError as e:
            raise ProviderError(
                _error_message(e.body, e.response.reason_phrase),
                status=e.status_code,
            ) from e
        except _openai.APIResponseValidationError as e:
            raise ProviderError(
                f"Malformed response from {self.model_config.name}: {e.message}",
            ) from e
        except _openai.APIConnectionError as e:
            raise ProviderError(f"{self.model_config.name} request failed: {e}") from e
        finally:
            if self._http_client is None:
                await client.close()

        if not isinstance(completion, ChatCompletion):
            raise ProviderError(
                f"Malformed response from {self.model_config.name}: "
                f"expected a chat completion, got {type(completion).__name__}"
            )
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ProviderError(_EMPTY_REPLY)
        _log_reply(t0, content)

        return validate_analysis(_extract_json(content))

    def _create_client(self, api_key: str) -> _openai.AsyncOpenAI:
        kwargs: dict = dict(
            base_url=self.model_config.base_url,
            api_key=api_key,
            max_retries=0,
            timeout=self.config.timeout_s,
        )
        if self._http_client is not None:
            kwargs["http_client"] = self._http_client
        return _openai.AsyncOpenAI(**kwargs)


def _extract_json(text: str) -> dict:
    """Parse the JSON object embedded in ``text``.

    Locates the first ``{`` and last ``}`` and parses only that substring, so
    prose or markdown fences around the object are ignored.

    Raises:
        ParseError: if no object boundary is found or ``json.loads`` fails.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ParseError(f"No JSON object found in AI response: {text[:200]!r}")
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse AI response as JSON: {e}") from e


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

_ADAPTERS: dict[str, type[ProviderAdapter]] = {
    "native": NativeDocumentAdapter,
    "chat": ChatCompletionAdapter,
}


def create_adapter(
    model_config: ModelConfig,
    config: Config,
    http_client: httpx.AsyncClient | None = None,
) -> ProviderAdapter:
    """Return the adapter for ``model_config.family``."""
    return _ADAPTERS[model_config.family](model_config, config, http_client)


def validate_analysis(data: object) -> PaperAnalysis:
    """Validate decoded JSON into a ``PaperAnalysis``.

    Raises:
        ParseError: listing the offending fields when validation fails.
    """
    try:
        return PaperAnalysis.model_validate(data)
    except ValidationError as e:
        compact = _compact_validation_errors(e)
        raise ParseError(
            "AI response does not match the analysis schema: "
            + "; ".join(compact[:4])
        ) from e


def _compact_validation_errors(exc: ValidationError) -> list[str]:
    """Convert pydantic errors into concise 'path: message' strings."""
    compact: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg", "validation error")
        compact.append(f"{loc}: {msg}" if loc else msg)
    return compact


def _json_or_none(response: httpx.Response) -> object:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(body: object, fallback: str) -> str:
    """Best-effort ``error.message`` from a provider error body."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return fallback or "Unknown error"


def _log_call(model_id: str, base_url: str) -> None:
    logger.info("Calling LLM  model=%s  backend=%s", model_id, base_url)


def _log_reply(t0: float, text: str) -> None:
    elapsed = time.monotonic() - t0
    logger.info("Response received (%.1fs, %s chars)", elapsed, f"{len(text):,}")
