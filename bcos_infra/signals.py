"""
Signals: named sources of numeric observations that alarms and widgets refer to.

Metric documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_cloudwatch/Metric.html
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from aws_cdk import Duration, aws_cloudwatch as cloudwatch


@dataclass(frozen=True)
class MetricSignal:
    """Read-only reference to an externally populated time series."""

    namespace: str
    metric_name: str
    dimensions: Dict[str, str] = field(default_factory=dict)
    statistic: str = "Average"
    period: Duration = field(default_factory=lambda: Duration.minutes(5))
    label: Optional[str] = None
    color: Optional[str] = None

    def metric(self, **overrides) -> cloudwatch.Metric:
        props = dict(
            namespace=self.namespace,
            metric_name=self.metric_name,
            dimensions_map=dict(self.dimensions) or None,
            statistic=self.statistic,
            period=self.period,
            label=self.label,
            color=self.color,
        )
        props.update(overrides)
        return cloudwatch.Metric(**props)


@dataclass(frozen=True)
class DerivedSignal(MetricSignal):
    """A metric produced by a log metric filter."""

    metric_filter: Any = None
    default_value: float = 0
