"""
Definition-time (synthesis) errors.

Every error raised here aborts `cdk synth` before a template is written,
so nothing is provisioned from a broken definition.
"""


class SynthesisError(Exception):
    """Base class for failures detected while assembling resource definitions."""


class ConfigurationError(SynthesisError):
    """Environment configuration is missing or invalid."""


class MissingThresholdError(SynthesisError):
    """A threshold policy has no entry for the active environment."""

    def __init__(self, policy_name, environment):
        self.policy_name = policy_name
        self.environment = environment
        super().__init__(
            f"Threshold policy '{policy_name}' has no entry for environment '{environment}'"
        )


class MalformedFilterPatternError(SynthesisError):
    """A literal metric filter pattern could not be parsed."""

    def __init__(self, pattern, reason):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Malformed filter pattern {pattern!r}: {reason}")


class DuplicateAlarmError(SynthesisError):
    """An alarm name or registry key was used twice in one synthesis."""
