# retrieval_qa/domain/services/prompting.py
from __future__ import annotations

from dataclasses import dataclass

from retrieval_qa.domain.models import PromptContext

NO_SOURCES_MARKER = "NO SOURCES"

GROUNDED_INSTRUCTIONS = (
    "You are a helpful assistant. Use ONLY the provided passages to answer.\n"
    "Cite every passage you rely on by its source id in square brackets, e.g. [source: doc-1].\n"
    "If the passages do not contain the answer, say that you do not know."
)

FALLBACK_INSTRUCTIONS = (
    "You are a helpful assistant. No documents matched this question.\n"
    "Answer briefly from general knowledge and state explicitly that the answer is not "
    "backed by any source document."
)


@dataclass(frozen=True)
class PromptTemplate:
    """Fixed instruction text wrapped around the serialized passages and the question."""

    grounded_instructions: str = GROUNDED_INSTRUCTIONS
    fallback_instructions: str = FALLBACK_INSTRUCTIONS

    def grounded(self, context: PromptContext, question: str) -> str:
        blocks = "\n\n".join(f"[source: {p.chunk.id}]\n{p.chunk.text}" for p in context)
        return (
            f"{self.grounded_instructions}\n\n"
            f"Passages:\n{blocks}\n\n"
            f"Question: {question}\n\n"
            "Answer:"
        )

    def fallback(self, question: str) -> str:
        return (
            f"{self.fallback_instructions}\n\n"
            f"Passages: [{NO_SOURCES_MARKER}]\n\n"
            f"Question: {question}\n\n"
            "Answer:"
        )
