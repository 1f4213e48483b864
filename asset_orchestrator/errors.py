from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for errors raised by asset_orchestrator."""


class ConfigError(OrchestratorError):
    """Invalid or unreadable build configuration."""
