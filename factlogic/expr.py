"""
Restricted expression evaluator for $if conditional facts.

Expressions are boolean conditions over an explicitly supplied context:

    $if random(0.3): has fox ears
    $if hasFact("poisoned") && random(0.5): takes damage
    $if time.isNight: glows faintly

Compilation runs three independent layers:
1. sanitize_expr(): character allowlist and keyword blocklist
2. ExpressionParser: grammar limited to literals, context names, one-level
   field access, calls to context functions, and operators
3. RestrictedPython: the generated Python source is compiled with guarded
   attribute access and evaluated with no builtins

Names resolve only against the context passed at call time.
"""

from __future__ import annotations

import ast
import logging
import threading
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any

from RestrictedPython import compile_restricted

from .config import FactLogicConfig, default_config
from .errors import CompilationError, EvaluationError, ExprError
from .expr_parser import parse_expression
from .sanitizer import sanitize_expr

logger = logging.getLogger(__name__)


def _field_getattr(obj: Any, name: str, *default: Any) -> Any:
    """
    Attribute guard for compiled expressions.

    Field access is a key lookup into a plain mapping, so context values
    never expose real Python attributes.
    """
    if isinstance(obj, Mapping):
        if name in obj:
            return obj[name]
        if default:
            return default[0]
        raise EvaluationError(f'Unknown field "{name}"')
    raise EvaluationError(
        f'Field access "{name}" is not allowed on {type(obj).__name__}'
    )


# Globals for every compiled expression: no builtins, only the field guard
_EVAL_GLOBALS: dict[str, Any] = {
    "__builtins__": {},
    "_getattr_": _field_getattr,
}


class CompiledPredicate:
    """
    A compiled expression: call with a context to get a bool.

    Pure with respect to (source, context); any randomness comes from
    functions the context supplies.
    """

    def __init__(self, source: str, python_source: str, code: Any, names: frozenset[str]):
        self.source = source
        self.python_source = python_source
        self.names = names
        self._code = code

    def __call__(self, context: Mapping[str, Any]) -> bool:
        missing = sorted(name for name in self.names if name not in context)
        if missing:
            raise EvaluationError(
                f'Unknown identifier "{missing[0]}" in expression: {self.source}',
                expression=self.source,
            )

        # Only the referenced names are visible to the code object
        scope = {name: context[name] for name in self.names}

        try:
            return bool(eval(self._code, _EVAL_GLOBALS, scope))
        except ExprError:
            raise
        except Exception as e:
            raise EvaluationError(
                f'Failed to evaluate expression "{self.source}": {e}',
                expression=self.source,
            ) from e

    def __repr__(self) -> str:
        return f"CompiledPredicate({self.source!r})"


class ExpressionCache:
    """
    Bounded LRU cache of compiled predicates keyed by trimmed source.

    Safe to share across threads; two threads compiling the same new key
    may both compile, and either result is equivalent.
    """

    def __init__(self, max_entries: int = 1024):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CompiledPredicate] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str) -> CompiledPredicate | None:
        with self._lock:
            predicate = self._entries.get(key)
            if predicate is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return predicate

    def put(self, key: str, predicate: CompiledPredicate) -> None:
        with self._lock:
            self._entries[key] = predicate
            self._entries.move_to_end(key)
            self._evict()

    def resize(self, max_entries: int) -> None:
        """Change the capacity, evicting least recently used entries if needed."""
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        with self._lock:
            self.max_entries = max_entries
            self._evict()

    def _evict(self) -> None:
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.evictions += 1
            logger.debug(f"Evicted compiled expression: {evicted!r}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_cache = ExpressionCache(default_config.expression.cache_max_entries)


def get_expression_cache() -> ExpressionCache:
    """Get the process-wide compiled expression cache."""
    return _cache


def clear_expression_cache() -> None:
    """Drop all compiled expressions and reset cache statistics."""
    _cache.clear()


def configure(config: FactLogicConfig) -> None:
    """Apply a loaded configuration to the process-wide cache."""
    _cache.resize(config.expression.cache_max_entries)


def compile_expr(expr: str) -> CompiledPredicate:
    """
    Compile an expression into a cached predicate.

    Raises:
        SanitizationError: Disallowed characters or keywords
        CompilationError: Invalid grammar
    """
    key = expr.strip()
    cached = _cache.get(key)
    if cached is not None:
        return cached

    sanitized = sanitize_expr(expr)

    try:
        parsed = parse_expression(sanitized)
        python_source = ast.unparse(parsed.tree)
        code = compile_restricted(python_source, filename="<fact-expr>", mode="eval")
    except RecursionError as e:
        raise CompilationError(
            f"Expression is nested too deeply: {sanitized[:80]}", expression=sanitized
        ) from e
    except (SyntaxError, ValueError, OverflowError) as e:
        raise CompilationError(
            f"Failed to compile expression: {sanitized}", expression=sanitized
        ) from e

    predicate = CompiledPredicate(sanitized, python_source, code, parsed.names)
    _cache.put(key, predicate)
    logger.debug(f"Compiled expression {sanitized!r} -> {python_source!r}")
    return predicate


def eval_expr(expr: str, context: Mapping[str, Any]) -> bool:
    """
    Evaluate an expression against a context.

    Raises:
        ExprError: Any failure, with the expression text in the message
    """
    try:
        predicate = compile_expr(expr)
        return predicate(context)
    except ExprError:
        raise
    except Exception as e:
        raise EvaluationError(
            f'Failed to evaluate expression "{expr}": {e}', expression=expr
        ) from e
