"""
Composite Rule Combiner

Combines registered alarms into one composite alarm with OR semantics: the
composite is in ALARM when any constituent is in ALARM. Composites are only
created in production, and only when every constituent alarm is registered;
otherwise the composite is skipped (logged and annotated, not an error).

CompositeAlarm documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_cloudwatch/CompositeAlarm.html
AlarmRule documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_cloudwatch/AlarmRule.html
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Tuple

from aws_cdk import (
    Annotations,
    aws_cloudwatch as cloudwatch,
    aws_cloudwatch_actions as cloudwatch_actions,
)

from .constants import PRODUCTION

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompositeRuleDefinition:
    name: str
    description: str
    alarm_keys: Tuple[str, ...]
    composite_alarm: Any = field(default=None, compare=False, repr=False)

    def breached(self, states: Mapping[str, bool]) -> bool:
        """OR over the constituent alarm states (True means the alarm is in ALARM)."""
        return any(states[key] for key in self.alarm_keys)

    def alarm_rule(self, registry) -> cloudwatch.IAlarmRule:
        return cloudwatch.AlarmRule.any_of(*[
            cloudwatch.AlarmRule.from_alarm(registry.get(key).alarm, cloudwatch.AlarmState.ALARM)
            for key in self.alarm_keys
        ])


def combine(scope, construct_id, name, description, alarm_keys, registry, topic,
            environment) -> Optional[CompositeRuleDefinition]:
    """Create the composite alarm, or return None when it must not exist."""
    if environment != PRODUCTION:
        logger.debug("Composite %s is production only; skipped for %s", name, environment)
        return None

    missing = registry.missing(alarm_keys)
    if missing:
        message = f"Composite alarm {name} skipped: constituent alarms not registered: {', '.join(missing)}"
        logger.warning(message)
        Annotations.of(scope).add_warning(message)
        return None

    definition = CompositeRuleDefinition(name, description, tuple(alarm_keys))
    composite_alarm = cloudwatch.CompositeAlarm(
        scope, construct_id,
        composite_alarm_name=name,
        alarm_description=description,
        alarm_rule=definition.alarm_rule(registry),
    )
    composite_alarm.add_alarm_action(cloudwatch_actions.SnsAction(topic))
    logger.info("Created composite alarm %s over %s", name, ", ".join(alarm_keys))

    return replace(definition, composite_alarm=composite_alarm)
