"""
Command interpretation agents.

The classifier turns free text into a validated intent; the orchestrator
routes it to entity resolution, task search and the record handlers.
"""
from app.agents.config import AgentConfig, agent_config
from app.agents.intent_classifier import IntentClassifier, parse_intent
from app.agents.intent_schema import IntentEnvelope, IntentKind, UnknownIntent
from app.agents.orchestrator import CommandOrchestrator

__all__ = [
    # Configuration
    "AgentConfig",
    "agent_config",
    # Classification
    "IntentClassifier",
    "IntentEnvelope",
    "IntentKind",
    "UnknownIntent",
    "parse_intent",
    # Orchestration
    "CommandOrchestrator",
]
