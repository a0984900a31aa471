import threading
from dataclasses import dataclass
from importlib import import_module
from typing import Any

from retrieval_qa.application.ports.generator_port import GeneratorPort
from retrieval_qa.domain.errors import ContentPolicyError
from retrieval_qa.domain.models import Generation
from retrieval_qa.infrastructure.provider_errors import translate_provider_error


@dataclass
class OpenAIChatGeneratorAdapter(GeneratorPort):
    """Chat-completions generator for any OpenAI-compatible server (OpenAI, vLLM, ...)."""

    base_url: str  # e.g. "http://localhost:8000/v1"
    api_key: str = "EMPTY"
    model: str = "meta-llama/Meta-Llama-3.1-8B-Instruct"
    temperature: float = 0.2
    timeout_s: float = 30.0

    def __post_init__(self) -> None:
        # Defer import of OpenAI to first use to avoid hard dependency in tests
        self._client: Any | None = None
        self._lock = threading.Lock()

    def _get_client(self) -> Any:
        with self._lock:
            if self._client is None:
                module = import_module("openai")
                # Retries are owned by the engine's retry policy
                self._client = module.OpenAI(
                    base_url=self.base_url,
                    api_key=self.api_key,
                    timeout=self.timeout_s,
                    max_retries=0,
                )
            return self._client

    def complete(self, prompt: str, max_tokens: int = 512) -> Generation:
        try:
            resp: Any = self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=max_tokens,
            )
        except Exception as ex:  # noqa: BLE001
            # Translate external errors to domain-specific errors
            raise translate_provider_error(ex, "openai-chat", "generation") from ex

        choice = resp.choices[0]
        finish_reason = choice.finish_reason or "stop"
        if finish_reason == "content_filter":
            raise ContentPolicyError(
                "generation stopped by the provider's content filter", provider="openai-chat"
            )
        usage = getattr(resp, "usage", None)
        tokens = getattr(usage, "total_tokens", None) if usage is not None else None
        return Generation(
            text=choice.message.content or "",
            tokens_used=int(tokens or 0),
            finish_reason=finish_reason,
        )
