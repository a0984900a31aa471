"""CLI for answering a single question against the configured index."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Sequence

from retrieval_qa.application.cancellation import CancelToken
from retrieval_qa.application.use_cases.answer_query import QueryEngine
from retrieval_qa.config.logging_config import configure_logging
from retrieval_qa.config.settings import AppSettings
from retrieval_qa.domain.errors import DomainError
from retrieval_qa.domain.types import MetadataValue


def parse_filter_value(raw: str) -> MetadataValue:
    """'true'/'false' -> bool, integers -> int, decimals -> float, else str."""
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def parse_filters(pairs: Sequence[str]) -> dict[str, MetadataValue]:
    filters: dict[str, MetadataValue] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"filter must look like key=value, got '{pair}'")
        filters[key.strip()] = parse_filter_value(value.strip())
    return filters


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retrieval-qa", description="Answer a question from the indexed documents."
    )
    parser.add_argument("--question", required=True)
    parser.add_argument(
        "--filter",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Metadata equality filter (repeatable)",
    )
    parser.add_argument(
        "--timeout", type=float, default=None, help="Deadline in seconds for the whole request"
    )
    return parser


def format_error(err: DomainError) -> str:
    stage = err.stage.value if err.stage is not None else "n/a"
    return f"[ERROR] {err.kind} (stage={stage}): {err.message}"


def main(
    argv: Sequence[str] | None = None,
    engine_factory: Callable[[], QueryEngine] | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        filters = parse_filters(args.filter)
    except argparse.ArgumentTypeError as ex:
        parser.error(str(ex))

    try:
        if engine_factory is None:
            from retrieval_qa.config.composition import build_query_engine

            settings = AppSettings()
            configure_logging(settings.log_level)
            engine = build_query_engine(settings)
        else:
            engine = engine_factory()
    except DomainError as err:
        print(format_error(err))
        return 1

    cancel = CancelToken.with_timeout(args.timeout) if args.timeout else None
    try:
        result = engine.answer(args.question, where=filters or None, cancel=cancel)
    except DomainError as err:
        print(format_error(err))
        return 1
    finally:
        engine.context.close()

    print("\n" + "=" * 80)
    print("ANSWER:")
    print("=" * 80)
    print(result.text)
    print("\n" + "=" * 80)
    print("SOURCES:")
    print("=" * 80)
    if not result.sources:
        print("(none)")
    for i, c in enumerate(result.sources, 1):
        print(f"[{i}] {c.chunk_id} (score={c.score:.3f})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
