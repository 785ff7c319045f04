"""
Error taxonomy for agentsync.

Every failure a run can hit is one of these classes. Library code raises
them; the CLI is the only place that turns them into a message on stderr
and an exit code.
"""

__all__ = [
    "AgentSyncError",
    "UsageError",
    "ConfigError",
    "TemplateError",
    "OverwriteRefusalError",
    "BackupExhaustionError",
    "NoEnabledTargetsError",
]


class AgentSyncError(Exception):
    """Base class for all operator-facing errors in agentsync."""

    exit_code = 1


class UsageError(AgentSyncError):
    """Malformed command line: unknown flag, missing flag value."""
    pass


class ConfigError(AgentSyncError):
    """Config missing, unreadable, not JSON, or not matching the schema."""
    pass


class TemplateError(AgentSyncError):
    """Template unreadable or failed to render."""
    pass


class OverwriteRefusalError(AgentSyncError):
    """Destination differs from the rendered output and overwrite is off."""
    pass


class BackupExhaustionError(AgentSyncError):
    """No free backup filename was found within the bounded search."""
    pass


class NoEnabledTargetsError(AgentSyncError):
    """Every target is disabled; most likely a misconfiguration."""

    exit_code = 2
