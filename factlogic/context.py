"""
Base expression context.

Callers start from create_base_context() and add domain fields (facts, name,
channel, unread_count, ...) with extend_context().
"""

from __future__ import annotations

import random as _random
import re
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from .config import FactLogicConfig, default_config
from .errors import EvaluationError
from .safe_regex import (
    compile_safe_pattern,
    safe_match,
    safe_replace,
    safe_search,
    safe_split,
)

ExprContext = dict[str, Any]

DICE_PATTERN = re.compile(r"^(\d+)d(\d+)([+-]\d+)?$", re.ASCII)

_FIELD_NAME = re.compile(r"[A-Za-z]\w*", re.ASCII)


def roll_dice(
    dice: str,
    rng: _random.Random | None = None,
    max_dice: int | None = None,
) -> int:
    """
    Roll a dice expression such as "2d6+3".

    Raises:
        EvaluationError: On malformed notation, zero sides, or too many dice
    """
    rng = rng or _random.Random()
    if max_dice is None:
        max_dice = default_config.context.max_dice

    text = str(dice)
    match = DICE_PATTERN.fullmatch(text)
    if not match:
        raise EvaluationError(f"Invalid dice expression: {dice}", expression=text)

    count = int(match.group(1))
    sides = int(match.group(2))
    modifier = int(match.group(3)) if match.group(3) else 0

    if sides < 1:
        raise EvaluationError(f"Dice need at least one side: {dice}", expression=text)
    if count > max_dice:
        raise EvaluationError(
            f"Too many dice in {dice} (max {max_dice})", expression=text
        )

    total = modifier
    for _ in range(count):
        total += rng.randint(1, sides)
    return total


def create_base_context(
    has_fact: Callable[[str], bool],
    *,
    now: datetime | None = None,
    rng: _random.Random | None = None,
    config: FactLogicConfig | None = None,
) -> ExprContext:
    """
    Create a base context with standard globals.

    Args:
        has_fact: Predicate checking whether the entity has a matching fact
        now: Clock reading for the time fields (default: wall clock)
        rng: Random source for random() and roll() (default: fresh Random)
        config: Configuration (default: module default)
    """
    config = config or default_config
    rng = rng or _random.Random()
    hour = (now or datetime.now()).hour
    is_day = config.context.day_start_hour <= hour < config.context.night_start_hour

    def chance(probability: float) -> bool:
        # random() is in [0, 1): 0 never passes, 1 always does
        return rng.random() < probability

    def roll(dice: str) -> int:
        return roll_dice(dice, rng=rng, max_dice=config.context.max_dice)

    return {
        "random": chance,
        "hasFact": has_fact,
        "roll": roll,
        "time": {
            "hour": hour,
            "isDay": is_day,
            "isNight": not is_day,
        },
        "match": safe_match,
        "search": safe_search,
        "replace": safe_replace,
        "split": safe_split,
    }


def extend_context(base: ExprContext, **fields: Any) -> ExprContext:
    """Return a copy of base with domain fields added."""
    for name in fields:
        if not _FIELD_NAME.fullmatch(name):
            raise ValueError(f"Invalid context field name: {name!r}")
    return {**base, **fields}


def fact_matcher(facts: Iterable[str]) -> Callable[[str], bool]:
    """
    Build a hasFact() that searches facts case-insensitively.

    The pattern is validated before it is compiled.
    """
    snapshot = list(facts)

    def has_fact(pattern: str) -> bool:
        compiled = compile_safe_pattern(str(pattern), re.IGNORECASE)
        return any(compiled.search(fact) for fact in snapshot)

    return has_fact
