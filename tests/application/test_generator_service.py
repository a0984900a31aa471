"""Tests for the Generator service."""

import pytest

from retrieval_qa.application.ports.clock_port import ClockPort
from retrieval_qa.application.services.generator import Generator
from retrieval_qa.application.services.retry import RetryPolicy
from retrieval_qa.domain.errors import ContentPolicyError, InvalidArgumentError, ProviderError
from retrieval_qa.domain.models import Generation


class FakeClock(ClockPort):
    def sleep(self, seconds: float) -> None:
        return None


class FakeGeneratorPort:
    def __init__(self, failures: list[Exception] | None = None, text: str = "generated") -> None:
        self.failures = list(failures or [])
        self.text = text
        self.calls: list[tuple[str, int]] = []

    def complete(self, prompt: str, max_tokens: int = 512) -> Generation:
        self.calls.append((prompt, max_tokens))
        if self.failures:
            raise self.failures.pop(0)
        return Generation(text=self.text, tokens_used=12)


def make_generator(port: FakeGeneratorPort) -> Generator:
    return Generator(port, RetryPolicy(max_retries=2, jitter=0.0), clock=FakeClock())


class TestGenerator:
    def test_returns_text_verbatim(self) -> None:
        port = FakeGeneratorPort(text="  keep   spacing \n")
        generation = make_generator(port).generate("prompt", max_output=64)
        assert generation.text == "  keep   spacing \n"
        assert generation.tokens_used == 12
        assert port.calls == [("prompt", 64)]

    @pytest.mark.parametrize("max_output", [0, -5])
    def test_rejects_non_positive_max_output(self, max_output: int) -> None:
        port = FakeGeneratorPort()
        with pytest.raises(InvalidArgumentError):
            make_generator(port).generate("prompt", max_output=max_output)
        assert port.calls == []

    def test_retries_transient_errors(self) -> None:
        port = FakeGeneratorPort(failures=[ProviderError("429", transient=True)] * 2)
        assert make_generator(port).generate("p").text == "generated"
        assert len(port.calls) == 3

    def test_timeout_on_every_attempt(self) -> None:
        port = FakeGeneratorPort(failures=[ProviderError("timeout", transient=True)] * 3)
        with pytest.raises(ProviderError) as exc_info:
            make_generator(port).generate("p")
        assert exc_info.value.attempts == 3
        assert len(port.calls) == 3

    def test_content_policy_is_not_retried(self) -> None:
        port = FakeGeneratorPort(failures=[ContentPolicyError("blocked")])
        with pytest.raises(ContentPolicyError):
            make_generator(port).generate("p")
        assert len(port.calls) == 1
