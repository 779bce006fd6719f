"""
factlogic: sandboxed conditions and regex patterns for authored facts.

Lets content authors attach conditions to facts ("$if random(0.3): has fox
ears") and pass regex patterns to string helpers, without granting code
execution or the ability to hang the process:
- Fact parsing and batch evaluation
- Layered expression sanitizing, compiling, and evaluation
- Structural regex validation against catastrophic backtracking
- Per-fact tracing for debugging
"""

__version__ = "0.1.0"

from .config import ContextConfig, ExpressionConfig, FactLogicConfig, default_config
from .context import (
    ExprContext,
    create_base_context,
    extend_context,
    fact_matcher,
    roll_dice,
)
from .errors import (
    CompilationError,
    EvaluationError,
    ExprError,
    FactSyntaxError,
    RegexSafetyError,
    SanitizationError,
)
from .expr import (
    CompiledPredicate,
    ExpressionCache,
    clear_expression_cache,
    compile_expr,
    configure,
    eval_expr,
    get_expression_cache,
)
from .facts import IF_SIGIL, ParsedFact, evaluate_facts, parse_fact
from .safe_regex import (
    compile_safe_pattern,
    safe_match,
    safe_replace,
    safe_search,
    safe_split,
    validate_regex_pattern,
)
from .sanitizer import sanitize_expr
from .trace import FactTrace, TraceReport, trace_facts

__all__ = [
    # Configuration
    "ContextConfig",
    "ExpressionConfig",
    "FactLogicConfig",
    "default_config",
    # Errors
    "ExprError",
    "SanitizationError",
    "CompilationError",
    "EvaluationError",
    "RegexSafetyError",
    "FactSyntaxError",
    # Expressions
    "sanitize_expr",
    "compile_expr",
    "eval_expr",
    "CompiledPredicate",
    "ExpressionCache",
    "get_expression_cache",
    "clear_expression_cache",
    "configure",
    # Context
    "ExprContext",
    "create_base_context",
    "extend_context",
    "fact_matcher",
    "roll_dice",
    # Facts
    "IF_SIGIL",
    "ParsedFact",
    "parse_fact",
    "evaluate_facts",
    # Regex safety
    "validate_regex_pattern",
    "compile_safe_pattern",
    "safe_match",
    "safe_search",
    "safe_replace",
    "safe_split",
    # Tracing
    "FactTrace",
    "TraceReport",
    "trace_facts",
]
