"""Collaborators used to turn a recipe URL into structured fields.

``HttpContentExtractor`` fetches a page and reduces it to text, and
``OpenAIRecipeInference`` asks a language model to fill in a recipe schema
from that text. Both report failures as :class:`ExtractionError`.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup
from loguru import logger
from openai import OpenAI, OpenAIError

from .errors import ExtractionError


DEFAULT_TIMEOUT = 20.0
DEFAULT_MAX_CHARS = 20_000
DEFAULT_MODEL = "gpt-4o-mini"

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

NOISE_TAGS = ("script", "style", "noscript", "nav", "footer", "header", "aside", "form", "svg")


class ContentExtractor(Protocol):
    def extract(self, url: str) -> str:
        """Return the readable content of ``url``."""


class RecipeInference(Protocol):
    def infer(self, content: str, instruction: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        """Return a best-effort object shaped like ``schema``."""


class HttpContentExtractor(ContentExtractor):
    """Fetch a page over HTTP and reduce it to text.

    JSON-LD blocks are kept verbatim ahead of the visible text because most
    recipe sites publish their structured ``Recipe`` data there.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_chars: int = DEFAULT_MAX_CHARS,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._timeout = timeout
        self._max_chars = max_chars
        self._client = client

    @classmethod
    def from_env(cls) -> "HttpContentExtractor":
        """Build an extractor from environment variables."""

        timeout = float(os.environ.get("EXTRACTION_TIMEOUT", DEFAULT_TIMEOUT))
        max_chars = int(os.environ.get("EXTRACTION_MAX_CHARS", DEFAULT_MAX_CHARS))
        return cls(timeout=timeout, max_chars=max_chars)

    def extract(self, url: str) -> str:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ExtractionError(f"Not a web address: {url!r}")

        html = self._fetch(url)
        content = html_to_text(html)
        if not content:
            raise ExtractionError(f"No readable content at {url}")
        return content[: self._max_chars]

    def _fetch(self, url: str) -> str:
        client = self._client or httpx.Client(
            timeout=self._timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
        try:
            response = client.get(url)
            response.raise_for_status()
            return response.text
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                f"{url} answered with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(f"Could not fetch {url}: {exc}") from exc
        finally:
            if client is not self._client:
                client.close()


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")

    structured = [
        (script.string or "").strip()
        for script in soup.find_all("script", type="application/ld+json")
        if (script.string or "").strip()
    ]

    for tag in soup.find_all(list(NOISE_TAGS)):
        tag.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""
    body = soup.get_text(separator="\n", strip=True)

    parts = [part for part in [*structured, title, body] if part]
    return "\n\n".join(parts)


class OpenAIRecipeInference(RecipeInference):
    """Structured inference backed by the OpenAI chat completions API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        client: Optional[OpenAI] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._client = client

    @classmethod
    def from_env(cls) -> "OpenAIRecipeInference":
        return cls(
            api_key=os.environ.get("OPENAI_API_KEY"),
            model=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
        )

    def _get_client(self) -> OpenAI:
        if self._client is None:
            try:
                self._client = OpenAI(api_key=self._api_key)
            except OpenAIError as exc:
                raise ExtractionError(f"Inference service is not configured: {exc}") from exc
        return self._client

    def infer(self, content: str, instruction: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        client = self._get_client()
        system_prompt = (
            "You extract structured data. Answer with a single JSON object that "
            f"follows this JSON schema:\n{json.dumps(schema)}"
        )

        try:
            completion = client.chat.completions.create(
                model=self._model,
                temperature=0,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": f"{instruction}\n\n{content}"},
                ],
            )
        except OpenAIError as exc:
            raise ExtractionError(f"Inference request failed: {exc}") from exc

        text = completion.choices[0].message.content if completion.choices else ""
        if not text:
            logger.warning("Inference returned an empty answer")
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ExtractionError("Inference returned malformed JSON") from exc

        return data if isinstance(data, dict) else {}


__all__ = [
    "ContentExtractor",
    "HttpContentExtractor",
    "OpenAIRecipeInference",
    "RecipeInference",
    "html_to_text",
]
