"""
Per-fact evaluation tracing for authors debugging their facts.

Unlike evaluate_facts(), a failing fact is recorded and the rest of the
batch still evaluates.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field, computed_field

from .errors import ExprError
from .facts import is_active, parse_fact

logger = logging.getLogger(__name__)


class FactTrace(BaseModel):
    """How a single fact evaluated."""

    raw: str
    conditional: bool = False
    expression: str | None = None
    expression_result: bool | None = None
    expression_error: str | None = None
    included: bool = False


class TraceReport(BaseModel):
    """Traces for a batch of facts plus the content that ended up active."""

    traces: list[FactTrace] = Field(default_factory=list)
    active: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def error_count(self) -> int:
        return sum(1 for t in self.traces if t.expression_error is not None)


def trace_fact(raw: str, context: Mapping[str, Any]) -> tuple[FactTrace, str | None]:
    """Trace one fact. Returns the trace and the active content, if any."""
    try:
        parsed = parse_fact(raw)
    except ExprError as e:
        logger.warning(f"Fact failed to parse: {e}")
        return FactTrace(raw=raw, conditional=True, expression_error=str(e)), None

    trace = FactTrace(
        raw=raw,
        conditional=parsed.conditional,
        expression=parsed.expression,
    )

    try:
        included = is_active(parsed, context)
    except ExprError as e:
        logger.warning(f"Fact expression failed: {e}")
        trace.expression_error = str(e)
        trace.expression_result = False
        return trace, None

    if parsed.conditional:
        trace.expression_result = included
    trace.included = included
    return trace, parsed.content if included else None


def trace_facts(facts: Iterable[str], context: Mapping[str, Any]) -> TraceReport:
    """Trace every fact, isolating failures."""
    report = TraceReport()
    for raw in facts:
        trace, content = trace_fact(raw, context)
        report.traces.append(trace)
        if content is not None:
            report.active.append(content)
    return report
