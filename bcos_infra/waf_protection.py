"""
WafProtection construct: a regional Web ACL in front of the application load balancer.

The rule list comes from waf_rules.compose; this construct only turns it into
CloudFormation, creates the WAF log group and exports the Web ACL identifiers.
"""
import logging

from aws_cdk import (
    Annotations,
    ArnFormat,
    CfnTag,
    CfnOutput,
    RemovalPolicy,
    Stack,
    aws_logs as logs,
    aws_wafv2 as wafv2,
)
from constructs import Construct

from .constants import (
    DEFAULT_RATE_LIMIT_NON_PRODUCTION,
    DEFAULT_RATE_LIMIT_PRODUCTION,
    NAME_PREFIX,
    PRODUCTION,
    TOPIC_PREFIX,
)
from .waf_logging import WafLoggingConfig
from .waf_rules import compose

logger = logging.getLogger(__name__)


class WafProtection(Construct):
    def __init__(self, scope: Construct, construct_id: str, *, environment: str,
                 rate_limit_per_ip=None, enable_geo_blocking=False, blocked_countries=(),
                 enable_managed_rules=None, enable_logging=False) -> None:
        super().__init__(scope, construct_id)

        is_production = environment == PRODUCTION
        if rate_limit_per_ip is None:
            rate_limit_per_ip = DEFAULT_RATE_LIMIT_PRODUCTION if is_production else DEFAULT_RATE_LIMIT_NON_PRODUCTION
        if enable_managed_rules is None:
            enable_managed_rules = is_production

        self.environment = environment

        # WAF only delivers to log groups whose name starts with aws-waf-logs-
        # https://docs.aws.amazon.com/waf/latest/developerguide/logging-cw-logs.html
        self.log_group_name = f"aws-waf-logs-{TOPIC_PREFIX}-{environment}"
        self.log_group = logs.LogGroup(
            self, "WAFLogGroup",
            log_group_name=self.log_group_name,
            retention=logs.RetentionDays.THREE_MONTHS if is_production else logs.RetentionDays.ONE_MONTH,
            removal_policy=RemovalPolicy.RETAIN,
        )

        if enable_geo_blocking and not blocked_countries:
            Annotations.of(self).add_warning(
                f"Geo blocking is enabled for {environment} but no countries are configured; "
                f"no geo rule was created"
            )

        self.rules = compose(
            environment,
            rate_limit_per_ip,
            enable_geo_blocking,
            blocked_countries,
            enable_managed_rules,
        )

        web_acl_name = f"{NAME_PREFIX}-{environment}-WebACL"
        self.web_acl = wafv2.CfnWebACL(
            self, "WebACL",
            scope="REGIONAL",
            default_action=wafv2.CfnWebACL.DefaultActionProperty(allow={}),
            name=web_acl_name,
            description=f"WAF protection for {NAME_PREFIX} {environment} environment",
            rules=[rule.to_property() for rule in self.rules],
            visibility_config=wafv2.CfnWebACL.VisibilityConfigProperty(
                sampled_requests_enabled=True,
                cloud_watch_metrics_enabled=True,
                metric_name=web_acl_name,
            ),
            tags=[
                CfnTag(key="Environment", value=environment),
                CfnTag(key="Application", value=NAME_PREFIX),
                CfnTag(key="ManagedBy", value="CDK"),
            ],
        )

        self.logging_config = None
        if enable_logging:
            # The logging API rejects the ":*" suffix that LogGroup.log_group_arn carries
            log_destination_arn = Stack.of(self).format_arn(
                service="logs",
                resource="log-group",
                resource_name=self.log_group_name,
                arn_format=ArnFormat.COLON_RESOURCE_NAME,
            )
            self.logging_config = WafLoggingConfig(
                self, "WAFLoggingConfiguration",
                web_acl_arn=self.web_acl.attr_arn,
                log_destination_arn=log_destination_arn,
            )
            self.logging_config.node.add_dependency(self.log_group)

        CfnOutput(
            self, "WebACLArn",
            value=self.web_acl.attr_arn,
            description=f"WAF Web ACL ARN for {environment}",
            export_name=f"{NAME_PREFIX}-{environment}-WebACL-Arn",
        )
        CfnOutput(
            self, "WebACLId",
            value=self.web_acl.attr_id,
            description=f"WAF Web ACL ID for {environment}",
            export_name=f"{NAME_PREFIX}-{environment}-WebACL-Id",
        )

    def associate_with_load_balancer(self, load_balancer_arn) -> wafv2.CfnWebACLAssociation:
        """Associate the Web ACL with an Application Load Balancer."""
        logger.info("Associating %s with load balancer", self.web_acl.name)
        return wafv2.CfnWebACLAssociation(
            self, "WebACLAssociation",
            resource_arn=load_balancer_arn,
            web_acl_arn=self.web_acl.attr_arn,
        )
