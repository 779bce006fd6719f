"""
Property-based tests for the expression sandbox and regex validator.
"""

import random
import re
import sys
from pathlib import Path

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from factlogic.context import create_base_context, roll_dice
from factlogic.errors import ExprError, RegexSafetyError, SanitizationError
from factlogic.expr import compile_expr, eval_expr
from factlogic.facts import IF_SIGIL, parse_fact
from factlogic.safe_regex import compile_safe_pattern, validate_regex_pattern
from factlogic.sanitizer import BLOCKED_KEYWORDS, sanitize_expr

# =============================================================================
# Strategies
# =============================================================================

REGEX_ALPHABET = "ab.\\[]()^$|*+?{},:=!<-dwsb1PZ"

regex_text = st.text(alphabet=REGEX_ALPHABET, max_size=40)

# Separators that keep a keyword a whole word
separators = st.sampled_from([" ", "(", ")", " && ", "!", ",", "."])

safe_atoms = st.sampled_from(["a", "b", "\\d", "[xy]", ".", "\\w", "(?:ab)"])
quantifiers = st.sampled_from(["*", "+", "?", "{2}", "{1,3}", "{2,}", "*?"])

disallowed_chars = st.sampled_from(list("`;{}@#$^~\\\n") + ["é", "中"])


def make_context(seed: int):
    return create_base_context(lambda p: False, rng=random.Random(seed))


@st.composite
def quantified_sequences(draw):
    """A sequence of atoms where at least one atom is quantified."""
    atoms = draw(st.lists(safe_atoms, min_size=1, max_size=5))
    index = draw(st.integers(min_value=0, max_value=len(atoms) - 1))
    parts = []
    for i, atom in enumerate(atoms):
        parts.append(atom)
        if i == index:
            parts.append(draw(quantifiers))
    return "".join(parts)


# =============================================================================
# Sanitizer properties
# =============================================================================


@pytest.mark.hypothesis
class TestSanitizerProperties:
    """Property-based tests for sanitize_expr()."""

    @given(
        word=st.sampled_from(BLOCKED_KEYWORDS),
        before=separators,
        after=separators,
        tail=st.text(alphabet="abc 123", max_size=10),
    )
    @settings(max_examples=200)
    def test_blocked_word_always_rejected(self, word, before, after, tail):
        """Any text containing a blocked whole word is rejected."""
        with pytest.raises(SanitizationError):
            sanitize_expr(f"x{before}{word}{after}{tail}")

    @given(
        prefix=st.text(alphabet="abc 12()&|", max_size=10),
        bad=disallowed_chars,
        suffix=st.text(alphabet="abc 12()&|", max_size=10),
    )
    @settings(max_examples=200)
    def test_disallowed_character_always_rejected(self, prefix, bad, suffix):
        """Any character outside the charset is rejected."""
        assume((prefix + bad + suffix).strip())
        assume(bad.strip())
        with pytest.raises(SanitizationError):
            sanitize_expr(prefix + bad + suffix)


# =============================================================================
# Regex validator properties
# =============================================================================


@pytest.mark.hypothesis
class TestRegexValidatorProperties:
    """Property-based tests for validate_regex_pattern()."""

    @given(pattern=st.text(max_size=60))
    @settings(max_examples=500)
    def test_only_raises_regex_safety_error(self, pattern):
        """Arbitrary input either validates or raises RegexSafetyError."""
        try:
            validate_regex_pattern(pattern)
        except RegexSafetyError:
            pass

    @given(pattern=regex_text)
    @settings(max_examples=1000)
    def test_validated_patterns_have_no_capturing_groups(self, pattern):
        """Anything that validates compiles without capture groups."""
        try:
            compiled = compile_safe_pattern(pattern)
        except RegexSafetyError:
            return
        assert compiled.groups == 0

    @given(pattern=regex_text)
    @settings(max_examples=1000)
    def test_validated_patterns_have_no_backreferences(self, pattern):
        """No validated pattern contains an unescaped digit escape."""
        try:
            validate_regex_pattern(pattern)
        except RegexSafetyError:
            return
        # Strip escaped backslashes, then look for \1-\9
        assert not re.search(r"\\[1-9]", pattern.replace("\\\\", ""))

    @given(inner=quantified_sequences(), outer=quantifiers)
    @settings(max_examples=300)
    def test_quantified_group_with_quantifier_rejected(self, inner, outer):
        """(?:...q...)q is always rejected."""
        validate_regex_pattern(inner)
        with pytest.raises(RegexSafetyError):
            validate_regex_pattern(f"(?:{inner}){outer}")

    @given(inner=quantified_sequences(), other=quantified_sequences(), outer=quantifiers)
    @settings(max_examples=200)
    def test_taint_survives_alternation_and_nesting(self, inner, other, outer):
        """A quantifier in any branch at any depth taints the group."""
        with pytest.raises(RegexSafetyError):
            validate_regex_pattern(f"(?:(?:x|{inner})|{other}){outer}")

    @given(atoms=st.lists(safe_atoms, min_size=1, max_size=6), quantifier=quantifiers)
    @settings(max_examples=200)
    def test_flat_quantified_atoms_accepted(self, atoms, quantifier):
        """Quantifying each plain atom once is always safe."""
        validate_regex_pattern("".join(atom + quantifier for atom in atoms))


# =============================================================================
# Evaluator properties
# =============================================================================


@pytest.mark.hypothesis
class TestEvaluatorProperties:
    """Property-based tests for compile_expr() / eval_expr()."""

    @given(
        a=st.integers(min_value=-1000, max_value=1000),
        b=st.integers(min_value=-1000, max_value=1000),
        c=st.integers(min_value=-1000, max_value=1000),
    )
    @settings(max_examples=200)
    def test_comparisons_match_python(self, a, b, c):
        """Comparison chains agree with Python semantics."""
        expr = f"{a} < {b} && {b} <= {c} || {a} == {c}"
        expected = (a < b and b <= c) or a == c

        assert eval_expr(expr, {}) is expected

    @given(seed=st.integers(min_value=0, max_value=2**32 - 1))
    @settings(max_examples=100)
    def test_random_boundaries_for_any_seed(self, seed):
        """random(0) is false and random(1) true regardless of the source."""
        context = make_context(seed)

        assert eval_expr("random(0)", context) is False
        assert eval_expr("random(1)", context) is True

    @given(
        flag=st.booleans(),
        count=st.integers(min_value=-50, max_value=50),
    )
    @settings(max_examples=200)
    def test_recompiled_predicates_agree(self, flag, count):
        """Two compiles of the same text behave identically."""
        source = "flag ? count > 3 : count % 2 == 0"
        context = {"flag": flag, "count": count}

        assert compile_expr(source)(context) == compile_expr(f"  {source} ")(context)

    @given(name=st.from_regex(r"[a-z][a-z0-9]{0,8}", fullmatch=True))
    @settings(max_examples=200)
    def test_unknown_identifiers_never_resolve(self, name):
        """A name missing from the context always fails."""
        assume(name not in {"true", "false", "null", "undefined"})
        try:
            eval_expr(name, {})
        except ExprError:
            return
        pytest.fail(f"{name!r} resolved without a context entry")


# =============================================================================
# Fact and dice properties
# =============================================================================


@pytest.mark.hypothesis
class TestFactProperties:
    """Property-based tests for parse_fact() and roll_dice()."""

    @given(text=st.text(max_size=80))
    @settings(max_examples=300)
    def test_plain_text_is_unconditional(self, text):
        """Text without the sigil parses to its trimmed self."""
        assume(not text.strip().startswith(IF_SIGIL))
        parsed = parse_fact(text)

        assert parsed.conditional is False
        assert parsed.content == text.strip()

    @given(
        expression=st.text(alphabet="abc ()&|!<>=.0123456789'", min_size=1, max_size=30),
        content=st.text(max_size=30),
    )
    @settings(max_examples=300)
    def test_conditional_splits_on_first_colon(self, expression, content):
        """Expression is everything before the first colon."""
        parsed = parse_fact(f"{IF_SIGIL}{expression}:{content}")

        assert parsed.conditional is True
        assert parsed.expression == expression.strip()
        assert parsed.content == content.strip()

    @given(
        count=st.integers(min_value=0, max_value=20),
        sides=st.integers(min_value=1, max_value=100),
        modifier=st.integers(min_value=-10, max_value=10),
        seed=st.integers(min_value=0, max_value=10_000),
    )
    @settings(max_examples=200)
    def test_roll_within_bounds(self, count, sides, modifier, seed):
        """NdS+M lands between N+M and N*S+M."""
        dice = f"{count}d{sides}" + (f"{modifier:+d}" if modifier else "")
        total = roll_dice(dice, rng=random.Random(seed))

        assert count + modifier <= total <= count * sides + modifier
