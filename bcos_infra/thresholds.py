"""
Per-environment threshold policies for every alarm the Monitoring construct creates.

A policy must carry a value for each supported environment. Resolving a policy for an
environment it does not cover is a synthesis error, never a silent default.

ComparisonOperator documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_cloudwatch/ComparisonOperator.html
"""
from dataclasses import dataclass, field
from typing import Dict

from aws_cdk import aws_cloudwatch as cloudwatch

from .constants import PRODUCTION, STAGING, SUPPORTED_ENVIRONMENTS
from .errors import MissingThresholdError

GREATER_THAN = cloudwatch.ComparisonOperator.GREATER_THAN_THRESHOLD
LESS_THAN = cloudwatch.ComparisonOperator.LESS_THAN_THRESHOLD


@dataclass(frozen=True)
class ThresholdValue:
    """A policy resolved for one environment."""

    threshold: float
    comparison_operator: cloudwatch.ComparisonOperator
    evaluation_periods: int


@dataclass(frozen=True)
class ThresholdPolicy:
    name: str
    values: Dict[str, ThresholdValue] = field(default_factory=dict)

    def resolve(self, environment) -> ThresholdValue:
        try:
            return self.values[environment]
        except KeyError:
            raise MissingThresholdError(self.name, environment) from None

    def covers(self, environments=SUPPORTED_ENVIRONMENTS):
        return all(env in self.values for env in environments)


def split_policy(name, production, non_production, comparison_operator, evaluation_periods):
    """Policy with one threshold for production and another for every other environment."""
    return ThresholdPolicy(
        name=name,
        values={
            PRODUCTION: ThresholdValue(production, comparison_operator, evaluation_periods),
            STAGING: ThresholdValue(non_production, comparison_operator, evaluation_periods),
        },
    )


def uniform_policy(name, threshold, comparison_operator, evaluation_periods):
    return split_policy(name, threshold, threshold, comparison_operator, evaluation_periods)


# Keyed by alarm kind (the last segment of the alarm name).
ALARM_POLICIES = {
    "ECS-LowTaskCount": split_policy("ECS-LowTaskCount", 1, 0.5, LESS_THAN, 2),
    "ECS-HighCPU": split_policy("ECS-HighCPU", 80, 85, GREATER_THAN, 3),
    "ECS-HighMemory": split_policy("ECS-HighMemory", 85, 90, GREATER_THAN, 3),
    "ALB-UnhealthyTargets": uniform_policy("ALB-UnhealthyTargets", 0, GREATER_THAN, 2),
    "ALB-High5XXErrors": split_policy("ALB-High5XXErrors", 10, 20, GREATER_THAN, 2),
    "ALB-HighResponseTime": split_policy("ALB-HighResponseTime", 2, 5, GREATER_THAN, 3),
    "App-HighErrorRate": split_policy("App-HighErrorRate", 5, 10, GREATER_THAN, 2),
    "App-HealthCheckFailures": uniform_policy("App-HealthCheckFailures", 3, GREATER_THAN, 2),
    # Fires on the first security event
    "App-SecurityEvents": uniform_policy("App-SecurityEvents", 1, GREATER_THAN, 1),
    "App-AuthFailures": split_policy("App-AuthFailures", 10, 20, GREATER_THAN, 2),
    "App-DatabaseErrors": split_policy("App-DatabaseErrors", 5, 10, GREATER_THAN, 2),
    "App-PermissionDenials": split_policy("App-PermissionDenials", 20, 40, GREATER_THAN, 2),
}


def resolve_all(policies, environment):
    """Resolve every policy up front so a missing entry fails before any alarm exists."""
    return {kind: policy.resolve(environment) for kind, policy in policies.items()}
