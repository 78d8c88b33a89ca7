"""Completion provider: one prompt in, generated text out."""

import logging
import os
import re
from typing import Any, Literal, Protocol

from anthropic import Anthropic
import anthropic
import openai

from autofix_bot.agents.exceptions import AgentError, ProviderFailure

logger = logging.getLogger(__name__)

# Constants
HF_ROUTER_BASE_URL = "https://router.huggingface.co/v1"
HF_TEXT_MODEL = "deepseek-ai/DeepSeek-V3"
HF_VISION_MODEL = "meta-llama/Llama-3.2-11B-Vision-Instruct"
OPENAI_MODEL = "gpt-4o-mini"
ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
MAX_COMPLETION_TOKENS = 2000
TEMPERATURE = 0.7
EMPTY_REPLY = "No response."
DATA_URL_RE = re.compile(r"^data:(?P<media>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)

Provider = Literal["huggingface", "openai", "anthropic"]
PROVIDERS: tuple[str, ...] = ("auto", "huggingface", "openai", "anthropic")


class Completer(Protocol):
    """Anything that can turn a prompt into text."""

    def complete(
        self,
        prompt: str,
        image: str | None = None,
        model: str | None = None,
    ) -> str: ...


class CompletionProvider:
    """Calls Hugging Face (OpenAI-compatible), OpenAI or Anthropic."""

    def __init__(
        self,
        hf_token: str | None = None,
        openai_api_key: str | None = None,
        anthropic_api_key: str | None = None,
        model: str | None = None,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
    ) -> None:
        """Initialize provider clients.

        Keys fall back to HF_TOKEN, OPENAI_API_KEY and ANTHROPIC_API_KEY.

        Raises:
            AgentError: If no key is available at all.
        """
        self.model: str | None = model
        self.hf_token: str | None = hf_token or os.getenv("HF_TOKEN")
        self.openai_api_key: str | None = openai_api_key or os.getenv("OPENAI_API_KEY")
        self.anthropic_api_key: str | None = (
            anthropic_api_key or os.getenv("ANTHROPIC_API_KEY")
        )
        self._hf_client: openai.OpenAI | None = None
        self._openai_client: openai.OpenAI | None = None
        self._anthropic_client: Anthropic | None = None

        if self.hf_token:
            self._hf_client = openai.OpenAI(
                api_key=self.hf_token, base_url=HF_ROUTER_BASE_URL
            )
        if self.openai_api_key:
            self._openai_client = openai.OpenAI(api_key=self.openai_api_key)
        if self.anthropic_api_key:
            self._anthropic_client = Anthropic(api_key=self.anthropic_api_key)

        if not (self._hf_client or self._openai_client or self._anthropic_client):
            raise AgentError(
                "No completion provider key found. "
                "Set HF_TOKEN, OPENAI_API_KEY or ANTHROPIC_API_KEY."
            )
        self.set_provider_config(
            llm_provider=llm_provider,
            llm_fallback_provider=llm_fallback_provider,
            allow_fallback=allow_fallback,
        )

    def _normalize_provider(self, value: str) -> str:
        if value not in PROVIDERS:
            raise AgentError(f"Unsupported provider: {value}")
        return value

    def _client_for(self, provider: str) -> Any:
        return {
            "huggingface": self._hf_client,
            "openai": self._openai_client,
            "anthropic": self._anthropic_client,
        }.get(provider)

    def set_provider_config(
        self,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
    ) -> None:
        self.llm_provider = self._normalize_provider(llm_provider)
        self.llm_fallback_provider = (
            self._normalize_provider(llm_fallback_provider)
            if llm_fallback_provider
            else None
        )
        self.allow_fallback = bool(allow_fallback)

        if self.llm_provider != "auto" and self._client_for(self.llm_provider) is None:
            raise AgentError(f"No API key found for --llm-provider={self.llm_provider}.")
        if self.allow_fallback and self.llm_fallback_provider:
            if self._client_for(self.llm_fallback_provider) is None:
                raise AgentError(
                    f"Fallback provider requested as {self.llm_fallback_provider} "
                    "but its API key is not set."
                )

    def _primary_provider(self) -> str:
        if self.llm_provider == "auto":
            for provider in ("huggingface", "anthropic", "openai"):
                if self._client_for(provider) is not None:
                    return provider
        return self.llm_provider

    def _provider_chain(self) -> list[str]:
        chain: list[str] = [self._primary_provider()]
        if self.allow_fallback and self.llm_fallback_provider:
            fallback = self.llm_fallback_provider
            if fallback != chain[0]:
                chain.append(fallback)
        return chain

    def _resolve_model(self, provider: str, image: str | None, model: str | None) -> str:
        requested = model or self.model
        if provider == "huggingface":
            if image:
                return HF_VISION_MODEL
            return requested or HF_TEXT_MODEL
        if provider == "openai":
            if requested and not requested.startswith("claude-") and "/" not in requested:
                return requested
            return OPENAI_MODEL
        if requested and requested.startswith("claude-"):
            return requested
        return ANTHROPIC_MODEL

    def complete(
        self,
        prompt: str,
        image: str | None = None,
        model: str | None = None,
    ) -> str:
        """Submit a prompt (optionally with an image data URL) and return text.

        Raises:
            ProviderFailure: If every provider in the chain fails.
        """
        providers = self._provider_chain()
        last_error: ProviderFailure | None = None
        for provider in providers:
            try:
                return self._call(provider, prompt, image, model)
            except ProviderFailure as error:
                last_error = error
                logger.warning("Completion via %s failed: %s", provider, error)
                if not self.allow_fallback:
                    break

        if last_error is None:
            raise ProviderFailure("No completion provider available")
        raise last_error

    def _call(self, provider: str, prompt: str, image: str | None, model: str | None) -> str:
        client = self._client_for(provider)
        if client is None:
            raise ProviderFailure(f"{provider} client unavailable")
        resolved_model = self._resolve_model(provider, image, model)
        logger.info("Calling %s model %s", provider, resolved_model)

        if provider == "anthropic":
            try:
                response = client.messages.create(
                    model=resolved_model,
                    max_tokens=MAX_COMPLETION_TOKENS,
                    temperature=TEMPERATURE,
                    messages=[
                        {"role": "user", "content": _anthropic_content(prompt, image)}
                    ],
                )
            except anthropic.APIStatusError as exc:
                raise ProviderFailure(
                    "Anthropic error", exc.status_code, exc.response.text
                ) from exc
            except anthropic.APIError as exc:
                raise ProviderFailure(f"Anthropic error: {exc}") from exc
            return _parse_anthropic_reply(response)

        try:
            response = client.chat.completions.create(
                model=resolved_model,
                max_tokens=MAX_COMPLETION_TOKENS,
                temperature=TEMPERATURE,
                messages=[{"role": "user", "content": _openai_content(prompt, image)}],
            )
        except openai.APIStatusError as exc:
            label = "HF error" if provider == "huggingface" else "OpenAI error"
            raise ProviderFailure(label, exc.status_code, exc.response.text) from exc
        except openai.APIError as exc:
            raise ProviderFailure(f"{provider} error: {exc}") from exc
        return _parse_openai_reply(response)


def _openai_content(prompt: str, image: str | None) -> Any:
    if not image:
        return prompt
    return [
        {"type": "text", "text": prompt},
        {"type": "image_url", "image_url": {"url": image}},
    ]


def _anthropic_content(prompt: str, image: str | None) -> Any:
    if not image:
        return prompt
    match = DATA_URL_RE.match(image)
    if match:
        source = {
            "type": "base64",
            "media_type": match.group("media"),
            "data": match.group("data"),
        }
    else:
        source = {"type": "url", "url": image}
    return [
        {"type": "image", "source": source},
        {"type": "text", "text": prompt},
    ]


def _parse_openai_reply(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return EMPTY_REPLY
    text = choices[0].message.content
    return text.strip() if text and text.strip() else EMPTY_REPLY


def _parse_anthropic_reply(response: Any) -> str:
    parts = [
        block.text
        for block in getattr(response, "content", []) or []
        if getattr(block, "type", "text") == "text"
    ]
    text = "".join(parts).strip()
    return text or EMPTY_REPLY
