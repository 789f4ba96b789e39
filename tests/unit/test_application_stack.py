"""
Unit Tests for the BCOS Application Stack and Stage
Tests that each environment synthesizes its own WAF, monitoring and scaling resources

Test Level: Unit Testing (Infrastructure as Code)
- Builds stacks from the shipped config/*.json files
- Validates the synthesized CloudFormation templates
- No AWS API calls

AWS CDK Testing:
- Testing Guide: https://docs.aws.amazon.com/cdk/v2/guide/testing.html
- Template.from_stack: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.assertions/Template.html#aws_cdk.assertions.Template.from_stack
"""

import aws_cdk as cdk
import aws_cdk.assertions as assertions
import pytest

from bcos_infra.application_stack import ApplicationStack
from bcos_infra.application_stage import ApplicationStage
from bcos_infra.config import load_environment_config

LOAD_BALANCER_ARN = (
    "arn:aws:elasticloadbalancing:us-east-1:123456789012:loadbalancer/app/bcos/50dc6c495c0c9188"
)


@pytest.fixture(scope="module")
def production_config():
    return load_environment_config("production")


@pytest.fixture(scope="module")
def staging_config():
    return load_environment_config("staging")


@pytest.fixture(scope="module")
def production_template(production_config):
    """
    Synthesize the production stack.

    Template API: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.assertions/Template.html
    """
    app = cdk.App()
    stack = ApplicationStack(app, "bcos-production", config=production_config)
    return assertions.Template.from_stack(stack)


@pytest.fixture(scope="module")
def staging_template(staging_config):
    app = cdk.App()
    stack = ApplicationStack(app, "bcos-staging", config=staging_config)
    return assertions.Template.from_stack(stack)


def test_production_resources(production_template):
    """Test that production synthesizes the Web ACL, twelve alarms and the service health composite"""
    production_template.resource_count_is("AWS::WAFv2::WebACL", 1)
    production_template.resource_count_is("AWS::CloudWatch::Alarm", 12)
    production_template.resource_count_is("AWS::CloudWatch::CompositeAlarm", 1)
    production_template.resource_count_is("AWS::Logs::MetricFilter", 6)
    production_template.resource_count_is("AWS::SNS::Topic", 1)
    production_template.resource_count_is("AWS::CloudWatch::Dashboard", 1)
    production_template.resource_count_is("AWS::KMS::Key", 1)
    # WAF logging is enabled in production
    production_template.resource_count_is("Custom::AWS", 1)


def test_staging_resources(staging_template):
    """Test that staging synthesizes the same alarms without the composite"""
    staging_template.resource_count_is("AWS::CloudWatch::Alarm", 12)
    staging_template.resource_count_is("AWS::CloudWatch::CompositeAlarm", 0)
    staging_template.resource_count_is("Custom::AWS", 0)
    staging_template.has_resource_properties("AWS::SNS::Topic", {"TopicName": "bcos-staging-alerts"})


def test_metric_filters_target_imported_log_group(production_template):
    """Test that metric filters attach to the imported application log group"""
    production_template.has_resource_properties("AWS::Logs::MetricFilter", {
        "LogGroupName": "/ecs/bcos-production",
    })


def test_alert_key_allows_cloudwatch(production_template):
    """Test that the alert topic key lets CloudWatch publish encrypted notifications"""
    production_template.has_resource_properties("AWS::KMS::Key", {
        "EnableKeyRotation": True,
        "KeyPolicy": {
            "Statement": assertions.Match.array_with([
                assertions.Match.object_like({
                    "Principal": {"Service": "cloudwatch.amazonaws.com"},
                }),
            ]),
        },
    })


def test_autoscaling_tracks_cpu_and_memory(production_template):
    """Test that the ECS service scales on CPU and memory target tracking"""
    production_template.has_resource_properties("AWS::ApplicationAutoScaling::ScalableTarget", {
        "ResourceId": "service/bcos-production-cluster/bcos-production-service",
        "ScalableDimension": "ecs:service:DesiredCount",
        "MinCapacity": 2,
        "MaxCapacity": 20,
    })
    production_template.resource_count_is("AWS::ApplicationAutoScaling::ScalingPolicy", 2)
    production_template.has_resource_properties("AWS::ApplicationAutoScaling::ScalingPolicy", {
        "TargetTrackingScalingPolicyConfiguration": {
            "PredefinedMetricSpecification": {
                "PredefinedMetricType": "ECSServiceAverageCPUUtilization",
            },
            "TargetValue": 60,
            "ScaleOutCooldown": 180,
            "ScaleInCooldown": 600,
        },
    })


def test_autoscaling_disabled(staging_config):
    """Test that no scalable target exists when autoscaling is disabled"""
    ecs = staging_config.ecs.model_copy(update={
        "auto_scaling": staging_config.auto_scaling.model_copy(update={"enabled": False}),
    })
    config = staging_config.model_copy(update={"ecs": ecs})
    stack = ApplicationStack(cdk.App(), "bcos-staging", config=config)

    assertions.Template.from_stack(stack).resource_count_is(
        "AWS::ApplicationAutoScaling::ScalableTarget", 0
    )


def test_unconfigured_load_balancer_needs_deploy_time_parameters(production_template):
    """Test that a missing load balancer becomes deploy-time parameters and no association"""
    production_template.has_parameter("LoadBalancerFullName", {"Type": "String"})
    production_template.has_parameter("TargetGroupFullName", {"Type": "String"})
    production_template.resource_count_is("AWS::WAFv2::WebACLAssociation", 0)


def test_configured_load_balancer_is_associated(production_config):
    """Test that a configured load balancer is associated with the Web ACL"""
    config = production_config.model_copy(update={
        "load_balancer": production_config.load_balancer.model_copy(update={
            "arn": LOAD_BALANCER_ARN,
            "full_name": "app/bcos/50dc6c495c0c9188",
            "target_group_full_name": "targetgroup/bcos-tg/73e2d6bc24d8a067",
        }),
    })
    stack = ApplicationStack(cdk.App(), "bcos-production", config=config)
    template = assertions.Template.from_stack(stack)

    template.has_resource_properties("AWS::WAFv2::WebACLAssociation", {
        "ResourceArn": LOAD_BALANCER_ARN,
    })
    assert "LoadBalancerFullName" not in template.find_parameters("*")


def test_outputs(production_template):
    """Test that the dashboard URL, alert topic ARN and application URL are output"""
    production_template.has_output("DashboardURL", {})
    production_template.has_output("AlertTopicArn", {
        "Export": {"Name": "BCOS-production-AlertTopicArn"},
    })
    production_template.has_output("ApplicationURL", {"Value": "https://app.bendcare.com"})


def test_configuration_tags_applied(production_template):
    """Test that configuration tags reach the synthesized resources"""
    production_template.has_resource_properties("AWS::SNS::Topic", {
        "Tags": assertions.Match.array_with([{"Key": "CostCenter", "Value": "engineering"}]),
    })


def test_stages_are_independent(staging_config, production_config):
    """Test that each stage owns its own stack and resource names"""
    app = cdk.App()
    staging = ApplicationStage(app, "BCOS-StagingStage", config=staging_config)
    production = ApplicationStage(app, "BCOS-ProductionStage", config=production_config)

    staging_template = assertions.Template.from_stack(staging.stack)
    production_template = assertions.Template.from_stack(production.stack)

    staging_template.has_resource_properties("AWS::SNS::Topic", {"TopicName": "bcos-staging-alerts"})
    production_template.has_resource_properties("AWS::SNS::Topic", {"TopicName": "bcos-production-alerts"})
    assert staging.stack.monitoring.registry is not production.stack.monitoring.registry
    assert set(staging.stack.monitoring.registry.names).isdisjoint(production.stack.monitoring.registry.names)
