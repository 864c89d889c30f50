"""Description generation provider interface and implementations."""

from __future__ import annotations

import base64
import logging
import os
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from core.models import DescriptionError, ListingImage

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_TOKENS = 300


def resolve_api_key(explicit: str | None, *env_names: str) -> str:
    """Return the explicit key if given, else the first non-empty env var."""
    if explicit and explicit.strip():
        return explicit.strip()
    for name in env_names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


class DescriptionProvider(ABC):
    """Base interface for listing description providers."""

    provider_name: str = "base"

    @abstractmethod
    def describe(self, system_prompt: str, user_prompt: str, image: ListingImage | None = None) -> str:
        ...

    def timed_describe(
        self, system_prompt: str, user_prompt: str, image: ListingImage | None = None
    ) -> tuple[str, float]:
        start = time.time()
        text = self.describe(system_prompt, user_prompt, image)
        elapsed = time.time() - start
        return text, elapsed


class AnthropicProvider(DescriptionProvider):
    """Claude via the Anthropic Messages API."""

    provider_name = "anthropic"

    api_url = "https://api.anthropic.com/v1/messages"
    api_version = "2023-06-01"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
        timeout_s: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = resolve_api_key(api_key, "ANTHROPIC_API_KEY")
        self.model = model
        self.timeout_s = timeout_s
        self._client = client
        if not self.api_key:
            raise ValueError(
                "Anthropic API key is required. Set ANTHROPIC_API_KEY or pass api_key."
            )

    @staticmethod
    def build_content(user_prompt: str, image: ListingImage | None) -> list[dict[str, Any]]:
        content: list[dict[str, Any]] = []
        if image is not None and image.data:
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": image.media_type, "data": image.data},
            })
        elif image is not None and image.url:
            content.append({"type": "image", "source": {"type": "url", "url": image.url}})
        content.append({"type": "text", "text": user_prompt})
        return content

    def _post(self, body: dict[str, Any]) -> httpx.Response:
        headers = {
            "content-type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
        }
        if self._client is not None:
            return self._client.post(self.api_url, json=body, headers=headers, timeout=self.timeout_s)
        with httpx.Client(timeout=self.timeout_s) as http:
            return http.post(self.api_url, json=body, headers=headers)

    def describe(self, system_prompt: str, user_prompt: str, image: ListingImage | None = None) -> str:
        logger.info("Generating description via Anthropic model=%s", self.model)

        body = {
            "model": self.model,
            "max_tokens": MAX_DESCRIPTION_TOKENS,
            "system": system_prompt,
            "messages": [{"role": "user", "content": self.build_content(user_prompt, image)}],
        }

        try:
            resp = self._post(body)
        except httpx.HTTPError as e:
            raise DescriptionError(f"Failed to generate description: {e}") from e

        if resp.is_error:
            logger.error("Claude API error: %s", resp.text)
            raise DescriptionError(
                f"Failed to generate description: {resp.status_code} {resp.reason_phrase}"
            )

        try:
            return resp.json()["content"][0]["text"].strip()
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise DescriptionError("Failed to generate description: malformed response") from e


class OpenAIProvider(DescriptionProvider):
    """OpenAI chat completions with vision input."""

    provider_name = "openai"

    def __init__(self, api_key: str | None = None, model: str = "gpt-4o-mini") -> None:
        self.api_key = resolve_api_key(api_key, "OPENAI_API_KEY")
        self.model = model
        if not self.api_key:
            raise ValueError("OpenAI API key is required. Set OPENAI_API_KEY or pass api_key.")

    @staticmethod
    def build_content(user_prompt: str, image: ListingImage | None) -> list[dict[str, Any]]:
        content: list[dict[str, Any]] = []
        if image is not None and image.data:
            data_url = f"data:{image.media_type};base64,{image.data}"
            content.append({"type": "image_url", "image_url": {"url": data_url}})
        elif image is not None and image.url:
            content.append({"type": "image_url", "image_url": {"url": image.url}})
        content.append({"type": "text", "text": user_prompt})
        return content

    def describe(self, system_prompt: str, user_prompt: str, image: ListingImage | None = None) -> str:
        from openai import OpenAI

        client = OpenAI(api_key=self.api_key)
        logger.info("Generating description via OpenAI model=%s", self.model)

        response = client.chat.completions.create(
            model=self.model,
            max_tokens=MAX_DESCRIPTION_TOKENS,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": self.build_content(user_prompt, image)},
            ],
        )

        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise DescriptionError("OpenAI returned an empty description.")
        return text.strip()


class GeminiProvider(DescriptionProvider):
    """Google Gemini multimodal text generation."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.0-flash",
    ) -> None:
        self.api_key = resolve_api_key(api_key, "GEMINI_API_KEY", "GOOGLE_API_KEY")
        self.model = model
        self._client = None
        if not self.api_key:
            raise ValueError(
                "Gemini API key is required. Set GEMINI_API_KEY or GOOGLE_API_KEY, or pass api_key."
            )

    def _get_client(self):
        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def _image_bytes(image: ListingImage) -> tuple[bytes, str]:
        if image.data:
            return base64.b64decode(image.data), image.media_type

        with httpx.Client(timeout=30, follow_redirects=True) as http:
            resp = http.get(image.url)
            resp.raise_for_status()
        media_type = resp.headers.get("content-type", "image/jpeg").split(";")[0]
        return resp.content, media_type

    def describe(self, system_prompt: str, user_prompt: str, image: ListingImage | None = None) -> str:
        from google.genai import types

        client = self._get_client()
        logger.info("Generating description via Gemini model=%s", self.model)

        contents: list[Any] = []
        if image is not None:
            raw, media_type = self._image_bytes(image)
            contents.append(types.Part.from_bytes(data=raw, mime_type=media_type))
        contents.append(user_prompt)

        response = client.models.generate_content(
            model=self.model,
            contents=contents,
            config={
                "system_instruction": system_prompt,
                "temperature": 0.7,
                "max_output_tokens": MAX_DESCRIPTION_TOKENS,
            },
        )

        if not response.text:
            raise DescriptionError("Gemini returned no text. The request may have been filtered.")
        return response.text.strip()


def get_provider(name: str, **kwargs) -> DescriptionProvider:
    """Factory function to get a provider by name."""
    providers: dict[str, type[DescriptionProvider]] = {
        "anthropic": AnthropicProvider,
        "openai": OpenAIProvider,
        "gemini": GeminiProvider,
    }
    if name not in providers:
        raise ValueError(f"Unknown provider: {name}. Available: {list(providers.keys())}")
    return providers[name](**kwargs)
