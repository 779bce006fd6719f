"""
Error types for fact expressions and regex validation.

Every failure in the package is an ExprError. The subclasses let callers
tell the layers apart; content authors only ever see the message.
"""

from __future__ import annotations


class ExprError(Exception):
    """Raised when an authored expression, fact, or pattern is rejected."""

    def __init__(self, message: str, expression: str | None = None):
        super().__init__(message)
        self.expression = expression


class SanitizationError(ExprError):
    """Expression contains disallowed characters or a blocked keyword."""

    pass


class CompilationError(ExprError):
    """Expression uses allowed characters but is not valid grammar."""

    pass


class EvaluationError(ExprError):
    """Expression failed while running against a context."""

    pass


class RegexSafetyError(ExprError):
    """Pattern is structurally unsafe to hand to the regex engine."""

    def __init__(self, message: str, pattern: str | None = None):
        super().__init__(message, expression=pattern)
        self.pattern = pattern


class FactSyntaxError(ExprError):
    """A `$if` fact is malformed."""

    pass
