import pytest

from retrieval_qa.domain.errors import InvalidArgumentError
from retrieval_qa.domain.models import DocumentChunk, RetrievedPassage
from retrieval_qa.domain.services.budgeting import fit_to_budget


def make_passages(*texts: str) -> list[RetrievedPassage]:
    return [
        RetrievedPassage(DocumentChunk(id=f"p{i}", text=t, embedding=[1.0]), 1.0 - i / 10, i)
        for i, t in enumerate(texts)
    ]


class TestFitToBudget:
    def test_everything_fits(self) -> None:
        ctx = fit_to_budget(make_passages("aaa", "bb"), budget=10)
        assert [p.chunk.id for p in ctx] == ["p0", "p1"]
        assert ctx.used == 5
        assert ctx.dropped == ()

    def test_exact_fit_is_allowed(self) -> None:
        ctx = fit_to_budget(make_passages("aaaaa", "bbbbb"), budget=10)
        assert len(ctx) == 2
        assert ctx.used == 10

    def test_stops_at_first_passage_that_does_not_fit(self) -> None:
        """A later small passage is not pulled in after a larger one was cut."""
        ctx = fit_to_budget(make_passages("aaaa", "bbbbbbbb", "c"), budget=6)
        assert [p.chunk.id for p in ctx] == ["p0"]
        assert ctx.used == 4
        assert ctx.dropped == ("p1", "p2")

    def test_first_passage_too_large_gives_empty_context(self) -> None:
        ctx = fit_to_budget(make_passages("x" * 50), budget=10)
        assert ctx.is_empty
        assert ctx.dropped == ("p0",)

    def test_never_truncates_text(self) -> None:
        ctx = fit_to_budget(make_passages("hello", "world!"), budget=8)
        assert [p.chunk.text for p in ctx] == ["hello"]

    def test_custom_measure(self) -> None:
        words = lambda text: len(text.split())  # noqa: E731
        ctx = fit_to_budget(make_passages("one two", "three four five"), budget=4, measure=words)
        assert ctx.used == 2
        assert ctx.dropped == ("p1",)

    @pytest.mark.parametrize("budget", [0, -1])
    def test_rejects_non_positive_budget(self, budget: int) -> None:
        with pytest.raises(InvalidArgumentError):
            fit_to_budget(make_passages("a"), budget=budget)

    def test_used_never_exceeds_budget(self) -> None:
        passages = make_passages(*("x" * n for n in (3, 7, 1, 9, 2, 4)))
        for budget in range(1, 30):
            ctx = fit_to_budget(passages, budget)
            assert ctx.used <= budget
            assert ctx.used == sum(len(p.chunk.text) for p in ctx)
