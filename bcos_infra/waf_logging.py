"""
WAF logging configuration.

A Web ACL accepts only one logging configuration, and CloudFormation fails when
one already exists. putLoggingConfiguration replaces an existing configuration,
so create and update both call it through a custom resource; delete tolerates a
configuration that is already gone.

AwsCustomResource documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.custom_resources/AwsCustomResource.html
WAF logging destinations: https://docs.aws.amazon.com/waf/latest/developerguide/logging-cw-logs.html
"""
from aws_cdk import aws_iam as iam, custom_resources as cr
from constructs import Construct


class WafLoggingConfig(Construct):
    def __init__(self, scope: Construct, construct_id: str, *, web_acl_arn: str,
                 log_destination_arn: str, redacted_fields=None) -> None:
        super().__init__(scope, construct_id)

        put_logging_configuration = cr.AwsSdkCall(
            service="WAFV2",
            action="putLoggingConfiguration",
            parameters={
                "LoggingConfiguration": {
                    "ResourceArn": web_acl_arn,
                    "LogDestinationConfigs": [log_destination_arn],
                    "RedactedFields": list(redacted_fields or []),
                },
            },
            physical_resource_id=cr.PhysicalResourceId.of(f"waf-logging-{web_acl_arn}"),
        )

        self.resource = cr.AwsCustomResource(
            self, "Resource",
            on_create=put_logging_configuration,
            on_update=put_logging_configuration,
            on_delete=cr.AwsSdkCall(
                service="WAFV2",
                action="deleteLoggingConfiguration",
                parameters={"ResourceArn": web_acl_arn},
                ignore_error_codes_matching="WAFNonexistentItemException",
            ),
            policy=cr.AwsCustomResourcePolicy.from_statements([
                iam.PolicyStatement(
                    actions=[
                        "wafv2:PutLoggingConfiguration",
                        "wafv2:DeleteLoggingConfiguration",
                        "wafv2:GetLoggingConfiguration",
                    ],
                    resources=[web_acl_arn],
                ),
                # Log delivery permissions are not resource scoped
                # https://docs.aws.amazon.com/waf/latest/developerguide/logging-cw-logs.html#logging-cw-logs-permissions
                iam.PolicyStatement(
                    actions=[
                        "logs:CreateLogDelivery",
                        "logs:DeleteLogDelivery",
                        "logs:PutResourcePolicy",
                        "logs:DescribeResourcePolicies",
                        "logs:DescribeLogGroups",
                    ],
                    resources=["*"],
                ),
            ]),
        )
