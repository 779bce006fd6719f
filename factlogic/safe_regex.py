"""
Structural safety validation for author-supplied regex patterns.

Authors reach the regex engine through hasFact() and the match/search/
replace/split helpers. A pattern like (a+)+b can backtrack exponentially and
hang the process, so every pattern is checked by a single-pass recursive
descent parser before it is compiled.

The core rule: no quantifier may be applied to an expression that
itself contains a quantifier. Capturing groups, lookaround, and
backreferences are rejected outright.

The parser never compiles or runs the pattern.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .errors import RegexSafetyError

logger = logging.getLogger(__name__)

# Shorthand character classes and special escapes
SHORTHAND_ESCAPES = frozenset({"d", "D", "w", "W", "s", "S", "t", "n", "r", "b"})

# Escaped special characters (literal meaning)
SPECIAL_ESCAPES = frozenset(
    {".", "\\", "[", "]", "(", ")", "{", "}", "+", "*", "?", "^", "$", "|", "-", "/"}
)

_DIGITS = "0123456789"

# Bounds recursion depth of the parser
MAX_GROUP_DEPTH = 50

_UNKNOWN_ESCAPE_HINT = (
    "Allowed: \\d \\w \\s \\D \\W \\S \\t \\n \\r \\b and escaped special characters"
)


@dataclass(frozen=True)
class RegexNode:
    """Summary of a parsed sub-pattern."""

    # Whether this node or any descendant contains a quantifier
    has_quantifier: bool = False
    # Zero-width assertion, never quantifiable
    is_anchor: bool = False


_PLAIN = RegexNode()
_ANCHOR = RegexNode(is_anchor=True)
_QUANTIFIED = RegexNode(has_quantifier=True)


class RegexParser:
    """Recursive descent checker over a single pattern string."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self.pos = 0
        self.depth = 0

    def _fail(self, message: str) -> RegexSafetyError:
        logger.debug(f"Rejected regex {self.pattern!r}: {message}")
        return RegexSafetyError(f"Unsafe regex: {message}", pattern=self.pattern)

    def _peek(self) -> str | None:
        if self.pos < len(self.pattern):
            return self.pattern[self.pos]
        return None

    def _advance(self) -> str:
        ch = self.pattern[self.pos]
        self.pos += 1
        return ch

    def _has_more(self) -> bool:
        return self.pos < len(self.pattern)

    def parse(self) -> None:
        """Parse the full pattern, raising on the first unsafe construct."""
        self._parse_alternation()
        if self._has_more():
            ch = self._peek()
            if ch == ")":
                raise self._fail('unexpected ")" without matching "("')
            raise self._fail(f'unexpected character "{ch}"')

    def _parse_alternation(self) -> RegexNode:
        node = self._parse_sequence()
        while self._peek() == "|":
            self._advance()
            right = self._parse_sequence()
            node = RegexNode(has_quantifier=node.has_quantifier or right.has_quantifier)
        return node

    def _parse_sequence(self) -> RegexNode:
        has_quantifier = False

        while self._has_more():
            if self._peek() in ("|", ")"):
                break

            atom = self._parse_atom()
            quantified = self._try_quantifier(atom)
            if quantified.has_quantifier:
                has_quantifier = True

        return RegexNode(has_quantifier=has_quantifier)

    def _parse_atom(self) -> RegexNode:
        ch = self._peek()

        if ch == "\\":
            return self._parse_escape()
        if ch == "[":
            return self._parse_character_class()
        if ch == "(":
            return self._parse_group()
        if ch in ("^", "$"):
            self._advance()
            return _ANCHOR
        if ch in ("*", "+", "?"):
            raise self._fail("quantifier without preceding element")
        if ch == "{" and self._quantifier_brace_end() is not None:
            raise self._fail("quantifier without preceding element")

        # '.', a literal, or a '{' that is not quantifier syntax
        self._advance()
        return _PLAIN

    def _parse_escape(self) -> RegexNode:
        self._advance()  # '\'
        if not self._has_more():
            raise self._fail("trailing backslash with nothing after it")

        ch = self._advance()

        if ch == "b":
            return _ANCHOR
        if ch in SHORTHAND_ESCAPES or ch in SPECIAL_ESCAPES:
            return _PLAIN

        self._reject_escape(ch)
        return _PLAIN

    def _reject_escape(self, ch: str) -> None:
        if "1" <= ch <= "9":
            raise self._fail(
                f"backreferences (\\{ch}) are not allowed, they can cause "
                "exponential matching time"
            )
        raise self._fail(f'unknown escape "\\{ch}". {_UNKNOWN_ESCAPE_HINT}')

    def _parse_character_class(self) -> RegexNode:
        self._advance()  # '['

        if self._peek() == "^":
            self._advance()

        # ']' first in the class is a literal
        if self._peek() == "]":
            self._advance()

        while self._has_more():
            ch = self._peek()
            if ch == "]":
                self._advance()
                return _PLAIN
            if ch == "\\":
                self._advance()
                if not self._has_more():
                    raise self._fail("trailing backslash with nothing after it")
                escaped = self._advance()
                if escaped not in SHORTHAND_ESCAPES and escaped not in SPECIAL_ESCAPES:
                    self._reject_escape(escaped)
            else:
                self._advance()

        raise self._fail('unterminated character class, missing closing "]"')

    def _parse_group(self) -> RegexNode:
        self._advance()  # '('

        if not self._has_more():
            raise self._fail('unterminated group, missing closing ")"')

        if self._peek() != "?":
            raise self._fail(
                "capturing groups are not allowed (causes backtracking). "
                "Use (?:abc) instead"
            )

        self._advance()  # '?'
        if not self._has_more():
            raise self._fail('unterminated group, missing closing ")"')

        kind = self._peek()

        if kind == ":":
            self._advance()
            self.depth += 1
            if self.depth > MAX_GROUP_DEPTH:
                raise self._fail(f"groups nested more than {MAX_GROUP_DEPTH} levels deep")
            inner = self._parse_alternation()
            self.depth -= 1
            if self._peek() != ")":
                raise self._fail('unterminated group, missing closing ")"')
            self._advance()
            return RegexNode(has_quantifier=inner.has_quantifier)

        if kind == "=":
            raise self._fail("lookahead (?=...) is not allowed")
        if kind == "!":
            raise self._fail("negative lookahead (?!...) is not allowed")
        if kind == "<":
            self._advance()
            if not self._has_more():
                raise self._fail('unterminated group, missing closing ")"')
            after = self._peek()
            if after == "=":
                raise self._fail("lookbehind (?<=...) is not allowed")
            if after == "!":
                raise self._fail("negative lookbehind (?<!...) is not allowed")
            raise self._fail("named groups are not allowed. Use (?:...) instead")
        if kind == "P":
            raise self._fail(
                "named groups and named backreferences are not allowed. "
                "Use (?:...) instead"
            )

        raise self._fail(f'unknown group type "(?{kind}...)"')

    def _try_quantifier(self, atom: RegexNode) -> RegexNode:
        ch = self._peek()
        if ch is None:
            return atom

        if ch in ("*", "+", "?"):
            end = self.pos + 1
        elif ch == "{":
            end = self._quantifier_brace_end()
            if end is None:
                return atom
        else:
            return atom

        quantifier = self.pattern[self.pos:end]

        if atom.is_anchor:
            raise self._fail(
                "quantifier on an anchor (^ $ \\b), anchors are zero-width "
                "and cannot be quantified"
            )

        if atom.has_quantifier:
            raise self._fail(
                f'nested quantifier "{quantifier}" on a group that already '
                "contains a quantifier, this causes catastrophic backtracking. "
                "Flatten the pattern or remove one quantifier"
            )

        self.pos = end
        # Lazy modifier
        if self._peek() == "?":
            self._advance()

        return _QUANTIFIED

    def _quantifier_brace_end(self) -> int | None:
        """
        Return the index past a brace quantifier at the current position.

        Mirrors Python's re: '{' digits? (',' digits?)? '}' is a quantifier
        unless it is the empty '{}'. Anything else is a literal brace.
        """
        text = self.pattern
        i = self.pos + 1
        start = i
        while i < len(text) and text[i] in _DIGITS:
            i += 1
        if i < len(text) and text[i] == ",":
            i += 1
            while i < len(text) and text[i] in _DIGITS:
                i += 1
        if i < len(text) and text[i] == "}" and i > start:
            return i + 1
        return None


def validate_regex_pattern(pattern: str) -> None:
    """
    Validate a regex pattern string for safety.

    Raises:
        RegexSafetyError: With a descriptive message if the pattern is unsafe
    """
    RegexParser(pattern).parse()


def compile_safe_pattern(pattern: str, flags: int = 0) -> re.Pattern[str]:
    """Validate a pattern, then compile it. The only route into re.compile."""
    validate_regex_pattern(pattern)
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise RegexSafetyError(f"Invalid regex {pattern!r}: {e}", pattern=pattern) from e


def safe_match(text: str, pattern: str) -> bool:
    """True if the pattern matches anywhere in text."""
    return compile_safe_pattern(pattern).search(str(text)) is not None


def safe_search(text: str, pattern: str) -> int:
    """Index of the first match, or -1."""
    found = compile_safe_pattern(pattern).search(str(text))
    return found.start() if found else -1


def safe_replace(text: str, pattern: str, replacement: str) -> str:
    """Replace the first match; the replacement is inserted literally."""
    compiled = compile_safe_pattern(pattern)
    replacement = str(replacement)
    return compiled.sub(lambda _m: replacement, str(text), count=1)


def safe_split(text: str, pattern: str) -> list[str]:
    """Split text on every match of the pattern."""
    return compile_safe_pattern(pattern).split(str(text))
