from __future__ import annotations

import json
import logging
from typing import Any, Dict

from app.chat.prompts import build_enhancer_prompt, build_intent_classifier_prompt

logger = logging.getLogger(__name__)

_DEFAULT_MODELS = {"groq": "llama-3.1-8b-instant", "openai": "gpt-4o-mini"}


class LLMError(RuntimeError):
    pass


class LLMClient:
    """
    Thin LangChain chat-model wrapper.

    Groq is reached through its OpenAI-compatible endpoint, so both providers
    go through ``ChatOpenAI``. Every failure surfaces as ``LLMError``.
    """

    def __init__(
        self,
        *,
        model: str | None = None,
        provider: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.0,
        timeout_s: int = 30,
    ) -> None:
        self.model = model
        self.provider = provider
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings, *, chat: bool = False) -> "LLMClient":
        return cls(
            model=settings.LLM_CHAT_MODEL if chat else settings.LLM_MODEL,
            provider=settings.LLM_PROVIDER,
            api_key=settings.LLM_API_KEY,
            base_url=settings.groq_base_url if settings.LLM_PROVIDER == "groq" else None,
            temperature=settings.llm_chat_temperature if chat else settings.llm_temperature,
            timeout_s=settings.llm_timeout_s,
        )

    def classify(self, *, classifier_input: dict) -> dict:
        prompt = build_intent_classifier_prompt(classifier_input)
        raw_text = self._call_provider(prompt=prompt)
        return self._parse_json(raw_text)

    def enhance(self, *, enhancer_input: dict) -> dict:
        prompt = build_enhancer_prompt(enhancer_input)
        raw_text = self._call_provider(prompt=prompt)
        return self._parse_json(raw_text)

    def _call_provider(self, *, prompt: dict) -> str:
        if self.provider in ("groq", "openai"):
            return self._call_openai_compatible(prompt=prompt)
        raise LLMError(f"LLM provider not supported: {self.provider}")

    def _call_openai_compatible(self, *, prompt: dict) -> str:
        if not self.api_key:
            raise LLMError(f"API key for provider {self.provider} is not set")

        from langchain_core.messages import HumanMessage, SystemMessage
        from langchain_openai import ChatOpenAI

        model = self.model or _DEFAULT_MODELS[self.provider]
        messages = [
            SystemMessage(content=prompt["system"]),
            HumanMessage(content=prompt["user"]),
        ]

        def run_call(*, with_response_format: bool) -> str:
            logger.info(
                "LLM call start provider=%s model=%s response_format=%s",
                self.provider,
                model,
                with_response_format,
            )
            model_kwargs = {"response_format": {"type": "json_object"}} if with_response_format else {}
            llm = ChatOpenAI(
                model=model,
                temperature=self.temperature,
                timeout=self.timeout_s,
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=0,
                model_kwargs=model_kwargs,
            )
            response = llm.invoke(messages)
            output_text = response.content
            if not output_text:
                raise LLMError(f"{self.provider} returned empty content")
            if not isinstance(output_text, str):
                output_text = json.dumps(output_text)
            logger.info("LLM call success provider=%s output_len=%s", self.provider, len(output_text))
            return output_text

        try:
            return run_call(with_response_format=True)
        except Exception as e:
            logger.warning("LLM call failed with response_format: %s", e)
        try:
            return run_call(with_response_format=False)
        except LLMError:
            raise
        except Exception as e:
            raise LLMError(f"{self.provider} call failed: {e}") from e

    def _parse_json(self, text: str) -> Dict[str, Any]:
        if not isinstance(text, str) or not text.strip():
            raise LLMError("LLM returned empty response")
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            start = text.find("{")
            end = text.rfind("}")
            if start == -1 or end <= start:
                raise LLMError("LLM response is not JSON") from None
            try:
                parsed = json.loads(text[start : end + 1])
            except json.JSONDecodeError as e:
                raise LLMError(f"LLM response is not JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise LLMError("LLM response is not a JSON object")
        return parsed
