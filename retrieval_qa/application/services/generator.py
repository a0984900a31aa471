"""Generator: retrying, cancellable access to a text generation provider."""

from __future__ import annotations

import logging
from concurrent.futures import Executor

from retrieval_qa.application.cancellation import CancelToken
from retrieval_qa.application.ports.clock_port import ClockPort
from retrieval_qa.application.ports.generator_port import GeneratorPort
from retrieval_qa.application.services.retry import RetryPolicy
from retrieval_qa.domain.errors import InvalidArgumentError
from retrieval_qa.domain.models import Generation

logger = logging.getLogger(__name__)


class Generator:
    """Applies the shared retry policy to a GeneratorPort.

    ContentPolicyError is not a ProviderError and therefore never retried.
    The generated text is returned verbatim.
    """

    def __init__(
        self,
        port: GeneratorPort,
        policy: RetryPolicy,
        *,
        clock: ClockPort,
        executor: Executor | None = None,
    ) -> None:
        self.port = port
        self.policy = policy
        self.clock = clock
        self.executor = executor

    def generate(
        self, prompt: str, max_output: int = 512, cancel: CancelToken | None = None
    ) -> Generation:
        if max_output <= 0:
            raise InvalidArgumentError(f"max_output must be > 0, got {max_output}")
        generation = self.policy.call(
            lambda: self.port.complete(prompt, max_tokens=max_output),
            operation="generation",
            clock=self.clock,
            cancel=cancel,
            executor=self.executor,
        )
        logger.debug("Generated %d chars (%d tokens)", len(generation.text), generation.tokens_used)
        return generation
