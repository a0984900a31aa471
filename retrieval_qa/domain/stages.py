from enum import Enum


class Stage(str, Enum):
    """States of a single QueryEngine.answer call."""

    START = "START"
    RETRIEVING = "RETRIEVING"
    NO_CONTEXT_FALLBACK = "NO_CONTEXT_FALLBACK"
    ASSEMBLING = "ASSEMBLING"
    GENERATING = "GENERATING"
    DONE = "DONE"
    FAILED = "FAILED"
