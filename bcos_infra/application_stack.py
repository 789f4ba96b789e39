"""
BCOS Application Stack
Adds edge protection, monitoring and alerting to an existing ECS Fargate service

AWS Services Used:
- AWS WAF: Web ACL in front of the application load balancer
  Documentation: https://docs.aws.amazon.com/waf/latest/developerguide/waf-chapter.html
- Amazon CloudWatch: Alarms, composite alarms, log metric filters and dashboards
  Documentation: https://docs.aws.amazon.com/AmazonCloudWatch/latest/monitoring/WhatIsCloudWatch.html
- Amazon SNS: Alarm notification distribution
  Documentation: https://docs.aws.amazon.com/sns/latest/dg/welcome.html
- Application Auto Scaling: Target tracking for the ECS service desired count
  Documentation: https://docs.aws.amazon.com/autoscaling/application/userguide/what-is-application-auto-scaling.html
- AWS KMS: Encryption key for the alert topic
  Documentation: https://docs.aws.amazon.com/kms/latest/developerguide/overview.html

The cluster, service, load balancer and application log group are provisioned
elsewhere; this stack only receives their names and ARNs from configuration.
"""

import logging

from aws_cdk import (
    Stack,
    Duration,
    CfnOutput,
    Tags,
    aws_applicationautoscaling as appscaling,
    aws_iam as iam,
    aws_kms as kms,
    aws_logs as logs,
)
from constructs import Construct

from .config import EnvironmentConfig
from .constants import NAME_PREFIX
from .monitoring import Monitoring
from .waf_protection import WafProtection

logger = logging.getLogger(__name__)


class ApplicationStack(Stack):
    """
    Monitoring and WAF resources for one environment.

    One instance per environment; instances never share the alarm registry or
    the alert topic.
    """

    def __init__(self, scope: Construct, construct_id: str, *, config: EnvironmentConfig, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        environment = config.environment
        logger.info("Synthesizing %s for %s", construct_id, environment)

        # ========================================================================
        # KMS KEY: Alert topic encryption
        # ========================================================================
        # CloudWatch must be allowed to use the key or encrypted alarm notifications are dropped
        # https://docs.aws.amazon.com/AmazonCloudWatch/latest/monitoring/AlarmThatSendsEmail.html#alarms-and-encryption
        if config.kms_key_arn:
            self.encryption_key = kms.Key.from_key_arn(self, "AlertTopicKey", config.kms_key_arn)
        else:
            self.encryption_key = kms.Key(
                self, "AlertTopicKey",
                alias=f"alias/{NAME_PREFIX.lower()}-{environment}-alerts",
                description=f"{NAME_PREFIX} {environment} alert topic encryption",
                enable_key_rotation=True,
            )
            self.encryption_key.grant_encrypt_decrypt(iam.ServicePrincipal("cloudwatch.amazonaws.com"))

        # Application log group written by the ECS task definition
        # LogGroup.from_log_group_name documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_logs/LogGroup.html
        log_group = logs.LogGroup.from_log_group_name(self, "ApplicationLogGroup", config.log_group_name)

        # ========================================================================
        # WAF: Web ACL for the application load balancer
        # ========================================================================
        self.waf_protection = WafProtection(
            self, "WAFProtection",
            environment=environment,
            rate_limit_per_ip=config.waf.rate_limit_per_ip,
            enable_geo_blocking=config.waf.geo_blocking_enabled,
            blocked_countries=config.waf.blocked_countries,
            enable_managed_rules=config.waf.enable_managed_rules,
            enable_logging=config.waf.logging_enabled,
        )
        if config.load_balancer.arn:
            self.waf_protection.associate_with_load_balancer(config.load_balancer.arn)
        else:
            logger.warning("No load balancer ARN configured for %s; Web ACL is not associated", environment)

        # ========================================================================
        # MONITORING: Alarms, dashboard and alert topic
        # ========================================================================
        self.monitoring = Monitoring(
            self, "Monitoring",
            environment=environment,
            encryption_key=self.encryption_key,
            cluster_name=config.cluster_name,
            service_name=config.service_name,
            load_balancer_full_name=config.load_balancer.full_name,
            target_group_full_name=config.load_balancer.target_group_full_name,
            log_group=log_group,
            alert_emails=config.alert_emails,
            enable_detailed_monitoring=config.detailed_monitoring,
        )

        # ========================================================================
        # AUTO SCALING: ECS service desired count
        # ========================================================================
        # ScalableTarget documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_applicationautoscaling/ScalableTarget.html
        self.scalable_target = None
        scaling = config.auto_scaling
        if scaling.enabled:
            self.scalable_target = appscaling.ScalableTarget(
                self, "ServiceScalableTarget",
                service_namespace=appscaling.ServiceNamespace.ECS,
                resource_id=f"service/{config.cluster_name}/{config.service_name}",
                scalable_dimension="ecs:service:DesiredCount",
                min_capacity=scaling.min_capacity,
                max_capacity=scaling.max_capacity,
            )
            self.scalable_target.scale_to_track_metric(
                "CpuScaling",
                target_value=scaling.target_cpu_utilization,
                predefined_metric=appscaling.PredefinedMetric.ECS_SERVICE_AVERAGE_CPU_UTILIZATION,
                scale_out_cooldown=Duration.seconds(scaling.scale_out_cooldown),
                scale_in_cooldown=Duration.seconds(scaling.scale_in_cooldown),
            )
            self.scalable_target.scale_to_track_metric(
                "MemoryScaling",
                target_value=scaling.target_memory_utilization,
                predefined_metric=appscaling.PredefinedMetric.ECS_SERVICE_AVERAGE_MEMORY_UTILIZATION,
                scale_out_cooldown=Duration.seconds(scaling.scale_out_cooldown),
                scale_in_cooldown=Duration.seconds(scaling.scale_in_cooldown),
            )

        # Tags documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/Tags.html
        for key, value in config.tags.items():
            Tags.of(self).add(key, value)

        # ========================================================================
        # OUTPUTS
        # ========================================================================
        # CfnOutput documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/CfnOutput.html
        CfnOutput(
            self, "DashboardURL",
            value=(
                f"https://console.aws.amazon.com/cloudwatch/home?region={self.region}"
                f"#dashboards:name={NAME_PREFIX}-{environment}-Dashboard"
            ),
            description=f"CloudWatch dashboard for {environment}",
        )
        CfnOutput(
            self, "AlertTopicArn",
            value=self.monitoring.alert_topic.topic_arn,
            description=f"SNS topic receiving {environment} alarm notifications",
            export_name=f"{NAME_PREFIX}-{environment}-AlertTopicArn",
        )
        if config.domain:
            CfnOutput(self, "ApplicationURL", value=f"https://{config.domain}",
                      description=f"{environment} application URL")
