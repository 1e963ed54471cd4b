"""
Output transformation pipeline.

Applies a caller-chosen, ordered subset of grep/sort/unique/head/tail to command
output. Stages run strictly in plan order; a stage missing from the plan is never
applied, even when its parameters are set.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import time

import regex

# Wall-clock budget for the whole grep stage; caller patterns can backtrack
GREP_TIMEOUT = 5.0


class Transformation(str, Enum):
    GREP = "grep"
    SORT = "sort"
    UNIQUE = "unique"
    HEAD = "head"
    TAIL = "tail"


DEFAULT_TRANSFORM_ORDER: tuple[Transformation, ...] = (
    Transformation.GREP,
    Transformation.SORT,
    Transformation.UNIQUE,
    Transformation.HEAD,
    Transformation.TAIL,
)


@dataclass(frozen=True)
class TransformOptions:
    """Per-stage parameters plus the plan that orders them."""

    grep_pattern: str | None = None
    invert_grep: bool = False
    sort: bool = False
    unique: bool = False
    head: int | None = None
    tail: int | None = None
    order: tuple[Transformation, ...] = DEFAULT_TRANSFORM_ORDER
    grep_timeout: float = GREP_TIMEOUT  # seconds


@dataclass(frozen=True)
class TransformResult:
    """Pipeline outcome. On failure `text` is empty and `error` says why."""

    success: bool
    text: str
    error: str | None = None


class _StageError(Exception):
    pass


def split_lines(text: str) -> list[str]:
    """Split on newlines; a trailing newline does not add an empty last line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _grep(text: str, opts: TransformOptions) -> str:
    if opts.grep_pattern is None:
        return text
    try:
        compiled = regex.compile(opts.grep_pattern)
    except regex.error as e:
        raise _StageError(f"Invalid grep pattern: {e}") from None

    deadline = time.monotonic() + opts.grep_timeout
    keep = []
    try:
        for line in split_lines(text):
            remaining = max(deadline - time.monotonic(), 0.001)
            # concurrent=True releases the GIL so the server loop keeps running
            matched = compiled.search(line, concurrent=True, timeout=remaining) is not None
            if matched != opts.invert_grep:
                keep.append(line)
    except TimeoutError:
        raise _StageError(f"Grep pattern timed out after {opts.grep_timeout:g}s") from None
    return "\n".join(keep)


def _sort(text: str, opts: TransformOptions) -> str:
    if not opts.sort:
        return text
    return "\n".join(sorted(split_lines(text)))


def _unique(text: str, opts: TransformOptions) -> str:
    if not opts.unique:
        return text
    kept: list[str] = []
    for line in split_lines(text):
        if not kept or kept[-1] != line:
            kept.append(line)
    return "\n".join(kept)


def _head(text: str, opts: TransformOptions) -> str:
    if opts.head is None:
        return text
    return "\n".join(split_lines(text)[: opts.head])


def _tail(text: str, opts: TransformOptions) -> str:
    if opts.tail is None:
        return text
    lines = split_lines(text)
    if opts.tail >= len(lines):
        return text
    return "\n".join(lines[len(lines) - opts.tail :])


STAGES: dict[Transformation, Callable[[str, TransformOptions], str]] = {
    Transformation.GREP: _grep,
    Transformation.SORT: _sort,
    Transformation.UNIQUE: _unique,
    Transformation.HEAD: _head,
    Transformation.TAIL: _tail,
}


def parse_order(names: Sequence[str]) -> tuple[Transformation, ...]:
    """Convert stage names to Transformations. Raises ValueError on unknown names."""
    order = []
    for name in names:
        try:
            order.append(Transformation(str(name).lower()))
        except ValueError:
            valid = ", ".join(t.value for t in Transformation)
            raise ValueError(f"Unknown transformation '{name}'. Valid: {valid}") from None
    return tuple(order)


def apply_transforms(text: str, opts: TransformOptions | None = None) -> TransformResult:
    """Run the plan over `text`, stopping at the first failing stage."""
    opts = opts or TransformOptions()
    result = text
    for stage in opts.order:
        try:
            result = STAGES[stage](result, opts)
        except _StageError as e:
            return TransformResult(success=False, text="", error=str(e))
    return TransformResult(success=True, text=result)
