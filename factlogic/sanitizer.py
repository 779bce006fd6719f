"""
First-layer filter for authored expressions.

Restricts expressions to a small character set and rejects identifiers that
the character set alone cannot exclude.
"""

from __future__ import annotations

import re

from .errors import SanitizationError

# Characters allowed anywhere in an expression
ALLOWED_PATTERN = re.compile(r"[\w\s\d.,()\[\]!&|<>=+\-*/%?:\"']+", re.ASCII)

BLOCKED_KEYWORDS = (
    "eval",
    "Function",
    "constructor",
    "prototype",
    "__proto__",
    "import",
    "export",
    "require",
    "process",
    "global",
    "window",
    "document",
    "fetch",
    "XMLHttpRequest",
    "setTimeout",
    "setInterval",
    "Promise",
    "async",
    "await",
    "while",
    "for",
    "do",
    "class",
    "new",
    "this",
    "super",
    "return",
    "throw",
    "try",
    "catch",
    "finally",
    "delete",
    "typeof",
    "instanceof",
    "void",
    "in",
    "of",
    "let",
    "const",
    "var",
    "function",
)

DANGEROUS_PATTERNS = tuple(
    re.compile(rf"\b{re.escape(word)}\b", re.ASCII) for word in BLOCKED_KEYWORDS
) + (
    re.compile(r"=>"),  # arrow functions
    re.compile(r"[;{}]"),  # statement separators, blocks
)


def sanitize_expr(expr: str) -> str:
    """
    Check an expression against the allowlist and blocklist.

    Args:
        expr: Raw expression text

    Returns:
        The trimmed expression

    Raises:
        SanitizationError: If either check fails
    """
    trimmed = expr.strip()

    if not ALLOWED_PATTERN.fullmatch(trimmed):
        raise SanitizationError(
            f"Invalid characters in expression: {trimmed}", expression=trimmed
        )

    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(trimmed):
            raise SanitizationError(
                f"Dangerous pattern in expression: {trimmed}", expression=trimmed
            )

    return trimmed
