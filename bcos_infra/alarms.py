"""
Alarm Definition Builder

Creates CloudWatch alarms from a signal and a threshold policy resolved for the
active environment, binds each alarm's ALARM transition to the shared SNS topic,
and optionally registers the alarm under a stable key so composite alarms can
reference it later in the same synthesis.

Alarm documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_cloudwatch/Alarm.html
SnsAction documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_cloudwatch_actions/SnsAction.html
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from aws_cdk import aws_cloudwatch as cloudwatch, aws_cloudwatch_actions as cloudwatch_actions

from .errors import DuplicateAlarmError
from .signals import MetricSignal
from .thresholds import ThresholdPolicy, ThresholdValue

logger = logging.getLogger(__name__)


def alarm_name(prefix, environment, kind):
    """Alarm names are referenced externally; keep the <Prefix>-<Environment>-<AlarmKind> form."""
    return f"{prefix}-{environment}-{kind}"


@dataclass(frozen=True)
class AlarmDefinition:
    name: str
    description: str
    signal: MetricSignal
    threshold: ThresholdValue
    alarm: Any = field(default=None, compare=False, repr=False)


class AlarmRegistry:
    """
    Alarms retained by key for one synthesis pass.

    Each Monitoring construct owns its own registry; registries are never shared
    between environments.
    """

    def __init__(self) -> None:
        self._by_key: Dict[str, AlarmDefinition] = {}
        self._names = set()
        self._definitions: List[AlarmDefinition] = []

    def add(self, definition: AlarmDefinition, key: Optional[str] = None):
        if definition.name in self._names:
            raise DuplicateAlarmError(f"Alarm name '{definition.name}' is already defined")
        if key is not None and key in self._by_key:
            raise DuplicateAlarmError(f"Alarm key '{key}' is already registered")
        self._names.add(definition.name)
        self._definitions.append(definition)
        if key is not None:
            self._by_key[key] = definition

    def get(self, key) -> AlarmDefinition:
        return self._by_key[key]

    def __contains__(self, key):
        return key in self._by_key

    def missing(self, keys: Iterable[str]) -> List[str]:
        return [key for key in keys if key not in self._by_key]

    @property
    def definitions(self) -> List[AlarmDefinition]:
        return list(self._definitions)

    @property
    def names(self) -> List[str]:
        return [definition.name for definition in self._definitions]


class AlarmBuilder:
    def __init__(self, scope, prefix, environment, topic, registry: AlarmRegistry) -> None:
        self.scope = scope
        self.prefix = prefix
        self.environment = environment
        self.topic = topic
        self.registry = registry

    def build_alarm(self, construct_id, kind, description, signal: MetricSignal,
                    policy: ThresholdPolicy, key=None,
                    treat_missing_data=None) -> AlarmDefinition:
        threshold = policy.resolve(self.environment)
        name = alarm_name(self.prefix, self.environment, kind)
        # Checked before the construct exists
        if name in self.registry.names or (key is not None and key in self.registry):
            raise DuplicateAlarmError(f"Alarm '{name}' (key {key!r}) is already defined")

        alarm = cloudwatch.Alarm(
            self.scope, construct_id,
            alarm_name=name,
            alarm_description=description,
            metric=signal.metric(),
            threshold=threshold.threshold,
            comparison_operator=threshold.comparison_operator,
            evaluation_periods=threshold.evaluation_periods,
            treat_missing_data=treat_missing_data,
        )
        # Bound in the same call that creates the alarm
        alarm.add_alarm_action(cloudwatch_actions.SnsAction(self.topic))

        definition = AlarmDefinition(
            name=name,
            description=description,
            signal=signal,
            threshold=threshold,
            alarm=alarm,
        )
        self.registry.add(definition, key)
        logger.info("Created alarm %s (threshold %s)", name, threshold.threshold)
        return definition
