"""
Ontoschedule Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Application configuration loaded from environment variables."""

    # Tracing
    TRACE_BUILD: bool = _flag("ONTOSCHEDULE_TRACE_BUILD")
    TRACE_ACTIONS: bool = _flag("ONTOSCHEDULE_TRACE_ACTIONS")
    NO_COLOR: bool = _flag("ONTOSCHEDULE_NO_COLOR")

    # Seed for the default run context RNG (unset means nondeterministic)
    RANDOM_SEED: str | None = os.getenv("ONTOSCHEDULE_SEED")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    FACTS_DIR: Path = Path(os.getenv("ONTOSCHEDULE_FACTS_DIR", str(PROJECT_ROOT / "examples")))

    @classmethod
    def seed(cls) -> int | None:
        """Return RANDOM_SEED as an int, or None when unset."""
        if cls.RANDOM_SEED is None or cls.RANDOM_SEED == "":
            return None
        return int(cls.RANDOM_SEED)

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors on malformed values."""
        try:
            cls.seed()
        except ValueError as exc:
            raise ValueError(
                f"ONTOSCHEDULE_SEED must be an integer, got {cls.RANDOM_SEED!r}"
            ) from exc

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Ontoschedule Configuration:",
            f"  Trace build: {cls.TRACE_BUILD}",
            f"  Trace actions: {cls.TRACE_ACTIONS}",
            f"  Colors: {'off' if cls.NO_COLOR else 'on'}",
            f"  Random seed: {cls.RANDOM_SEED or '(none)'}",
            f"  Facts dir: {cls.FACTS_DIR}",
        ]
        return "\n".join(lines)
