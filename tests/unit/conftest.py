"""
Fixtures shared by unit tests.
"""

import pytest

from factlogic.expr import clear_expression_cache


@pytest.fixture(autouse=True)
def fresh_expression_cache():
    """Each test starts with an empty compiled expression cache."""
    clear_expression_cache()
    yield
    clear_expression_cache()
