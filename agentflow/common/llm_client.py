"""
Provider-agnostic LLM client for agentflow.

Supports Anthropic, OpenAI, Google Gemini and Groq (through its
OpenAI-compatible endpoint) with a shared text-generation interface.
"""

from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger("agentflow.common.llm_client")

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "groq",
        model: str = "",
        api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "groq").lower()
        self.model = model
        self._client = None

        if self.provider not in ("anthropic", "openai", "google", "groq"):
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        if self.provider == "anthropic":
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=api_key)
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider in ("openai", "groq"):
            try:
                from openai import OpenAI

                if self.provider == "groq":
                    self._client = OpenAI(api_key=api_key, base_url=GROQ_BASE_URL)
                else:
                    self._client = OpenAI(api_key=api_key)
            except Exception as e:
                logger.warning("Failed to initialize %s client: %s", self.provider, e)
            return

        try:
            import google.generativeai as genai

            genai.configure(api_key=api_key)
            self._client = genai
            self._google_models = {}
        except Exception as e:
            logger.warning("Failed to initialize Gemini client: %s", e)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        return cls(
            provider=llm_config.provider,
            model=llm_config.model,
            api_key=llm_config.api_key,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        timeout: float = 30.0,
    ) -> str:
        """Single-turn completion. Raises RuntimeError when no client is configured."""
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "anthropic":
            return self._generate_anthropic(prompt, system, max_tokens, timeout)
        if self.provider in ("openai", "groq"):
            return self._generate_chat_completions(prompt, system, max_tokens, timeout)
        if self.provider == "google":
            return self._generate_gemini(prompt, system, max_tokens, timeout)
        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

    def _generate_anthropic(self, prompt, system, max_tokens, timeout) -> str:
        extra = {"system": system} if system else {}
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            **extra,
        )
        blocks = [block.text for block in response.content if getattr(block, "type", "text") == "text"]
        return "".join(blocks).strip()

    def _generate_chat_completions(self, prompt, system, max_tokens, timeout) -> str:
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=messages,
            timeout=timeout,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def _generate_gemini(self, prompt, system, max_tokens, timeout) -> str:
        # GenerativeModel binds the system instruction, so keep one per prompt
        key = system or ""
        model = self._google_models.get(key)
        if model is None:
            options = {"model_name": self.model}
            if system:
                options["system_instruction"] = system
            model = self._client.GenerativeModel(**options)
            self._google_models[key] = model
        response = model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens},
            request_options={"timeout": timeout},
        )
        return response.text.strip()
