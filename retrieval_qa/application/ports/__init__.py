"""Application ports package.

Re-exports the provider, index and runtime ports from their individual modules.
"""

from retrieval_qa.application.ports.clock_port import ClockPort
from retrieval_qa.application.ports.embedding_port import EmbeddingPort
from retrieval_qa.application.ports.generator_port import GeneratorPort
from retrieval_qa.application.ports.telemetry_port import NullTelemetry, TelemetryPort
from retrieval_qa.application.ports.vector_index_port import SearchHit, VectorIndexPort

__all__ = [
    "ClockPort",
    "EmbeddingPort",
    "GeneratorPort",
    "NullTelemetry",
    "SearchHit",
    "TelemetryPort",
    "VectorIndexPort",
]
