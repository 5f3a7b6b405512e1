"""
Agent Configuration - Centralized settings for command handling.
"""
import os
from dataclasses import dataclass

from app.core.config import settings


@dataclass
class AgentConfig:
    """Configuration for the command orchestrator."""

    # Fuzzy matching thresholds (inclusive, 0-100)
    RESOLVE_THRESHOLD: int = 70  # project/context name resolution
    SEARCH_THRESHOLD: int = 50  # task title search for complete/update

    # createProject: keep going when one of the project's tasks fails
    PARTIAL_FAILURE_TOLERANT: bool = True

    # Progress summaries
    PROGRESS_DECIMALS: int = 1

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Load configuration from environment variables."""
        return cls(
            RESOLVE_THRESHOLD=settings.resolve_threshold,
            SEARCH_THRESHOLD=settings.search_threshold,
            PARTIAL_FAILURE_TOLERANT=os.getenv("AGENT_PARTIAL_FAILURE_TOLERANT", "true").lower() == "true",
            PROGRESS_DECIMALS=int(os.getenv("AGENT_PROGRESS_DECIMALS", "1")),
        )


# Global config instance
agent_config = AgentConfig.from_env()
