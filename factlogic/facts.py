"""
Conditional fact parsing and batch evaluation.

A fact is plain text, or a condition followed by text:

    $if time.isNight: glows faintly
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import FactSyntaxError
from .expr import eval_expr

IF_SIGIL = "$if "


@dataclass(frozen=True)
class ParsedFact:
    """A fact split into its condition and content."""

    content: str
    conditional: bool = False
    expression: str | None = None


def parse_fact(fact: str) -> ParsedFact:
    """
    Parse a fact, detecting the $if prefix.

    Raises:
        FactSyntaxError: If a $if fact has no colon
    """
    trimmed = fact.strip()

    if not trimmed.startswith(IF_SIGIL):
        return ParsedFact(content=trimmed)

    rest = trimmed[len(IF_SIGIL):]
    expression, colon, content = rest.partition(":")
    if not colon:
        raise FactSyntaxError(f"Invalid $if fact, missing colon: {fact}", expression=fact)

    return ParsedFact(
        content=content.strip(),
        conditional=True,
        expression=expression.strip(),
    )


def is_active(parsed: ParsedFact, context: Mapping[str, Any]) -> bool:
    """Whether a parsed fact applies under the given context."""
    if not parsed.conditional:
        return True
    # An empty condition never applies
    if not parsed.expression:
        return False
    return eval_expr(parsed.expression, context)


def evaluate_facts(facts: Iterable[str], context: Mapping[str, Any]) -> list[str]:
    """
    Evaluate a list of facts, returning the content of those that apply.

    Non-conditional facts always apply. Conditional facts apply if their
    expression evaluates to true. The first error aborts the batch.
    """
    results: list[str] = []
    for fact in facts:
        parsed = parse_fact(fact)
        if is_active(parsed, context):
            results.append(parsed.content)
    return results
