"""
Configuration management for factlogic.

Values are read from ~/.factlogic/config.json when present.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ExpressionConfig:
    """Configuration for expression compilation."""

    # Distinct expression strings kept compiled at once
    cache_max_entries: int = 1024


@dataclass
class ContextConfig:
    """
    Configuration for the base expression context.

    Day runs from day_start_hour (inclusive) to night_start_hour (exclusive).
    """

    day_start_hour: int = 6
    night_start_hour: int = 18
    max_dice: int = 100


@dataclass
class FactLogicConfig:
    """Complete factlogic configuration."""

    expression: ExpressionConfig = field(default_factory=ExpressionConfig)
    context: ContextConfig = field(default_factory=ContextConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "FactLogicConfig":
        """Load configuration from file."""
        if path is None:
            path = Path.home() / ".factlogic" / "config.json"

        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        return cls(
            expression=ExpressionConfig(**data.get("expression", {})),
            context=ContextConfig(**data.get("context", {})),
        )

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = Path.home() / ".factlogic" / "config.json"

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "expression": self.expression.__dict__,
                    "context": self.context.__dict__,
                },
                f,
                indent=2,
            )


# Default configuration instance
default_config = FactLogicConfig()
