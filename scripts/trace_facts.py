#!/usr/bin/env python3
"""
Trace how a list of facts evaluates.

Reads one fact per line from a file (or stdin), evaluates each one against a
base context whose hasFact() searches the plain facts, and prints the trace
report as JSON. Failing facts are reported, not fatal.

Usage:
    trace_facts.py facts.txt
    echo '$if time.isNight: glows faintly' | trace_facts.py
"""

import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from factlogic.config import FactLogicConfig
from factlogic.context import create_base_context, fact_matcher
from factlogic.expr import configure
from factlogic.facts import IF_SIGIL
from factlogic.trace import trace_facts


def read_facts(text: str) -> list[str]:
    """Non-blank lines, in order."""
    return [line for line in text.splitlines() if line.strip()]


def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(message)s")

    if len(argv) > 1:
        text = Path(argv[1]).read_text()
    else:
        text = sys.stdin.read()

    facts = read_facts(text)
    plain = [f.strip() for f in facts if not f.strip().startswith(IF_SIGIL)]

    config = FactLogicConfig.load()
    configure(config)

    context = create_base_context(fact_matcher(plain), config=config)
    report = trace_facts(facts, context)

    print(report.model_dump_json(indent=2))
    return 1 if report.error_count else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
