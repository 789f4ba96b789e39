"""
Metric Filter Compiler

Turns a log match rule into a metric filter on a log group and returns
the resulting signal. Each matching log event adds 1 to the metric; periods with
no matches report 0 because the default value is set explicitly.

Two kinds of match are supported:
- AnyTermMatch: the event contains any of the given terms (case-sensitive)
- LiteralPatternMatch: a space-delimited positional pattern such as
  [timestamp, level="ERROR", message="*health*"]

Literal patterns are parsed here so that a malformed pattern fails synthesis
instead of failing later when CloudFormation creates the filter.

MetricFilter documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_logs/MetricFilter.html
Filter pattern syntax: https://docs.aws.amazon.com/AmazonCloudWatch/latest/logs/FilterAndPatternSyntax.html
"""
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from aws_cdk import Duration, aws_logs as logs

from .errors import MalformedFilterPatternError
from .signals import DerivedSignal

logger = logging.getLogger(__name__)

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")
_OPERATORS = ("!=", "<=", ">=", "=", "<", ">")


@dataclass(frozen=True)
class PatternField:
    """One positional field of a literal pattern."""

    name: str
    operator: Optional[str] = None
    value: Optional[str] = None

    @property
    def is_ellipsis(self):
        return self.name == "..."


@dataclass(frozen=True, init=False)
class AnyTermMatch:
    terms: Tuple[str, ...]

    def __init__(self, *terms):
        object.__setattr__(self, "terms", tuple(terms))

    def validate(self):
        if not self.terms:
            raise MalformedFilterPatternError("", "at least one term is required")
        for term in self.terms:
            if not term or not term.strip():
                raise MalformedFilterPatternError(term, "terms must not be blank")

    def filter_pattern(self) -> logs.IFilterPattern:
        self.validate()
        return logs.FilterPattern.any_term(*self.terms)


@dataclass(frozen=True)
class LiteralPatternMatch:
    pattern: str

    def validate(self):
        parse_literal_pattern(self.pattern)

    def filter_pattern(self) -> logs.IFilterPattern:
        self.validate()
        return logs.FilterPattern.literal(self.pattern)


def _split_fields(body, pattern):
    fields = []
    current = []
    in_quotes = False
    for char in body:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    if in_quotes:
        raise MalformedFilterPatternError(pattern, "unterminated quoted value")
    fields.append("".join(current).strip())
    return fields


def _parse_field(token, pattern):
    if not token:
        raise MalformedFilterPatternError(pattern, "empty field")
    if token == "...":
        return PatternField("...")

    # The operator is the first comparison character; values may contain any of them
    index = next((i for i, char in enumerate(token) if char in "!=<>"), None)
    if index is None:
        if not _FIELD_NAME.match(token):
            raise MalformedFilterPatternError(pattern, f"invalid field name {token!r}")
        return PatternField(token)

    operator = next((op for op in _OPERATORS if token.startswith(op, index)), None)
    if operator is None:
        raise MalformedFilterPatternError(pattern, f"invalid operator in {token!r}")
    name = token[:index].strip()
    value = token[index + len(operator):].strip()
    if not _FIELD_NAME.match(name):
        raise MalformedFilterPatternError(pattern, f"invalid field name {name!r}")
    if not value:
        raise MalformedFilterPatternError(pattern, f"field {name!r} has no value")
    if value.startswith('"') != value.endswith('"') or value == '"':
        raise MalformedFilterPatternError(pattern, f"unbalanced quotes in {token!r}")
    return PatternField(name, operator, value)


def parse_literal_pattern(pattern) -> List[PatternField]:
    """Parse a bracketed positional pattern into its fields or raise MalformedFilterPatternError."""
    if pattern is None:
        raise MalformedFilterPatternError(pattern, "pattern is required")
    text = pattern.strip()
    if not (text.startswith("[") and text.endswith("]")):
        raise MalformedFilterPatternError(pattern, "positional patterns must be enclosed in [ ]")
    body = text[1:-1].strip()
    if not body:
        raise MalformedFilterPatternError(pattern, "pattern has no fields")

    fields = [_parse_field(token, pattern) for token in _split_fields(body, pattern)]

    names = [f.name for f in fields if not f.is_ellipsis]
    duplicates = {name for name in names if names.count(name) > 1}
    if duplicates:
        raise MalformedFilterPatternError(
            pattern, f"duplicate field names: {', '.join(sorted(duplicates))}"
        )
    return fields


def compile_metric_filter(scope, construct_id, log_group, match_spec, namespace, metric_name,
                          statistic="Sum", period=None) -> DerivedSignal:
    """
    Create a metric filter that counts matching log events.

    The match is validated before the MetricFilter construct is created.
    """
    filter_pattern = match_spec.filter_pattern()

    metric_filter = logs.MetricFilter(
        scope, construct_id,
        log_group=log_group,
        metric_namespace=namespace,
        metric_name=metric_name,
        metric_value="1",
        filter_pattern=filter_pattern,
        # Without an explicit default, periods with no matches report no data
        default_value=0,
    )
    logger.debug("Compiled metric filter %s/%s", namespace, metric_name)

    return DerivedSignal(
        namespace=namespace,
        metric_name=metric_name,
        statistic=statistic,
        period=period or Duration.minutes(5),
        metric_filter=metric_filter,
        default_value=0,
    )
