"""
WAF Rule-Set Composer

Builds the ordered rule list for the Web ACL. Rules are appended in a fixed,
environment-conditional order and priorities come from a counter that starts
at 1 and increments once per appended rule, so priorities never collide:

1. managed rule groups (common, known bad inputs, OWASP top 10 in production)
2. per-IP rate limit, health checks excluded
3. geo block, when enabled and at least one country is configured
4. API abuse protection (path prefix AND stricter rate limit), production only

Each statement type renders both to the CloudFormation shape (to_dict) and to
the CfnWebACL property classes (to_property).

CfnWebACL documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_wafv2/CfnWebACL.html
Rule statements: https://docs.aws.amazon.com/waf/latest/developerguide/waf-rule-statements-list.html
"""
import itertools
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from aws_cdk import aws_wafv2 as wafv2

from .constants import API_PATH_PREFIX, API_RATE_LIMIT, HEALTH_CHECK_PATH_PREFIX, PRODUCTION

logger = logging.getLogger(__name__)

MANAGED_VENDOR = "AWS"

# (rule group name, metric name stem), in append order
COMMON_RULE_SET = ("AWSManagedRulesCommonRuleSet", "CommonRuleSet")
KNOWN_BAD_INPUTS_RULE_SET = ("AWSManagedRulesKnownBadInputsRuleSet", "KnownBadInputs")
OWASP_TOP_TEN_RULE_SET = ("AWSManagedRulesOWASPTopTenRuleSet", "OWASPTopTen")


@dataclass(frozen=True)
class ManagedRuleGroupRef:
    name: str
    vendor_name: str = MANAGED_VENDOR

    def to_dict(self):
        return {"managedRuleGroupStatement": {"vendorName": self.vendor_name, "name": self.name}}

    def to_property(self):
        return wafv2.CfnWebACL.StatementProperty(
            managed_rule_group_statement=wafv2.CfnWebACL.ManagedRuleGroupStatementProperty(
                vendor_name=self.vendor_name,
                name=self.name,
            )
        )


@dataclass(frozen=True)
class PathPrefixMatch:
    """Byte match on the lowercased URI path."""

    prefix: str

    def to_dict(self):
        return {
            "byteMatchStatement": {
                "searchString": self.prefix,
                "fieldToMatch": {"uriPath": {}},
                "textTransformations": [{"priority": 0, "type": "LOWERCASE"}],
                "positionalConstraint": "STARTS_WITH",
            }
        }

    def to_property(self):
        return wafv2.CfnWebACL.StatementProperty(
            byte_match_statement=wafv2.CfnWebACL.ByteMatchStatementProperty(
                search_string=self.prefix,
                field_to_match=wafv2.CfnWebACL.FieldToMatchProperty(uri_path={}),
                text_transformations=[
                    wafv2.CfnWebACL.TextTransformationProperty(priority=0, type="LOWERCASE")
                ],
                positional_constraint="STARTS_WITH",
            )
        )


@dataclass(frozen=True)
class RateLimitStatement:
    """Rate limit keyed by client IP, optionally excluding requests on one path prefix."""

    limit: int
    excluded_path_prefix: Optional[str] = None

    def to_dict(self):
        statement = {"limit": self.limit, "aggregateKeyType": "IP"}
        if self.excluded_path_prefix:
            statement["scopeDownStatement"] = {
                "notStatement": {"statement": PathPrefixMatch(self.excluded_path_prefix).to_dict()}
            }
        return {"rateBasedStatement": statement}

    def to_property(self):
        scope_down = None
        if self.excluded_path_prefix:
            scope_down = wafv2.CfnWebACL.StatementProperty(
                not_statement=wafv2.CfnWebACL.NotStatementProperty(
                    statement=PathPrefixMatch(self.excluded_path_prefix).to_property()
                )
            )
        return wafv2.CfnWebACL.StatementProperty(
            rate_based_statement=wafv2.CfnWebACL.RateBasedStatementProperty(
                limit=self.limit,
                aggregate_key_type="IP",
                scope_down_statement=scope_down,
            )
        )


@dataclass(frozen=True)
class GeoMatchStatement:
    country_codes: Tuple[str, ...]

    def to_dict(self):
        return {"geoMatchStatement": {"countryCodes": list(self.country_codes)}}

    def to_property(self):
        return wafv2.CfnWebACL.StatementProperty(
            geo_match_statement=wafv2.CfnWebACL.GeoMatchStatementProperty(
                country_codes=list(self.country_codes)
            )
        )


@dataclass(frozen=True)
class CompoundStatement:
    """AND of a path prefix match and a rate limit."""

    path_match: PathPrefixMatch
    rate_limit: RateLimitStatement

    def to_dict(self):
        return {"andStatement": {"statements": [self.path_match.to_dict(), self.rate_limit.to_dict()]}}

    def to_property(self):
        return wafv2.CfnWebACL.StatementProperty(
            and_statement=wafv2.CfnWebACL.AndStatementProperty(
                statements=[self.path_match.to_property(), self.rate_limit.to_property()]
            )
        )


MatchStatement = Union[ManagedRuleGroupRef, RateLimitStatement, GeoMatchStatement, CompoundStatement]


@dataclass(frozen=True)
class WafRule:
    """
    One Web ACL rule.

    Managed rule groups carry an override of "none" (the group's own actions
    decide); every other rule blocks.
    """

    name: str
    priority: int
    statement: MatchStatement
    metric_name: str

    @property
    def is_managed(self):
        return isinstance(self.statement, ManagedRuleGroupRef)

    def to_dict(self):
        rule = {"name": self.name, "priority": self.priority}
        if self.is_managed:
            rule["overrideAction"] = {"none": {}}
        else:
            rule["action"] = {"block": {}}
        rule["statement"] = self.statement.to_dict()
        rule["visibilityConfig"] = {
            "sampledRequestsEnabled": True,
            "cloudWatchMetricsEnabled": True,
            "metricName": self.metric_name,
        }
        return rule

    def to_property(self):
        if self.is_managed:
            actions = dict(override_action=wafv2.CfnWebACL.OverrideActionProperty(none={}))
        else:
            actions = dict(action=wafv2.CfnWebACL.RuleActionProperty(block={}))
        return wafv2.CfnWebACL.RuleProperty(
            name=self.name,
            priority=self.priority,
            statement=self.statement.to_property(),
            visibility_config=wafv2.CfnWebACL.VisibilityConfigProperty(
                sampled_requests_enabled=True,
                cloud_watch_metrics_enabled=True,
                metric_name=self.metric_name,
            ),
            **actions,
        )


def compose(environment, rate_limit_per_ip, geo_block_enabled, blocked_countries,
            managed_rules_enabled) -> List[WafRule]:
    """Return the ordered rule list for one environment. Same input, same output."""
    priorities = itertools.count(1)
    rules = []

    def append(name, statement, metric_name):
        rules.append(WafRule(name, next(priorities), statement, metric_name))

    if managed_rules_enabled:
        managed = [COMMON_RULE_SET, KNOWN_BAD_INPUTS_RULE_SET]
        if environment == PRODUCTION:
            managed.append(OWASP_TOP_TEN_RULE_SET)
        for group_name, metric_stem in managed:
            append(f"{MANAGED_VENDOR}-{group_name}", ManagedRuleGroupRef(group_name),
                   f"{metric_stem}-{environment}")

    append(
        f"RateLimitRule-{environment}",
        RateLimitStatement(rate_limit_per_ip, excluded_path_prefix=HEALTH_CHECK_PATH_PREFIX),
        f"RateLimit-{environment}",
    )

    countries = tuple(blocked_countries or ())
    if geo_block_enabled and countries:
        append(f"GeoBlockRule-{environment}", GeoMatchStatement(countries), f"GeoBlock-{environment}")
    elif geo_block_enabled:
        logger.warning("Geo blocking is enabled for %s but no countries are configured; "
                       "geo rule omitted", environment)

    if environment == PRODUCTION:
        append(
            f"APIAbuseProtection-{environment}",
            CompoundStatement(PathPrefixMatch(API_PATH_PREFIX), RateLimitStatement(API_RATE_LIMIT)),
            f"APIAbuseProtection-{environment}",
        )

    logger.info("Composed %d WAF rules for %s", len(rules), environment)
    return rules
