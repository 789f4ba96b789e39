"""
Integration Tests for a deployed BCOS stage
Checks the alarms and Web ACL that CloudFormation actually created

Test Level: Integration Testing
- Requires a deployed stage and AWS credentials
- Skips when the stack is not deployed or credentials are unavailable
- Read-only: describes resources, never modifies them

Select the stage with BCOS_ENVIRONMENT (default: staging).

AWS APIs used:
- describe_stacks: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/cloudformation/client/describe_stacks.html
- describe_alarms: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/cloudwatch/client/describe_alarms.html
- get_web_acl: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/wafv2/client/get_web_acl.html
"""

import os

import boto3
import pytest
from botocore.exceptions import BotoCoreError, ClientError

from bcos_infra.config import load_environment_config
from bcos_infra.monitoring import LOG_ALARMS
from bcos_infra.thresholds import ALARM_POLICIES
from bcos_infra.waf_rules import compose

pytestmark = pytest.mark.integration

ENVIRONMENT = os.getenv("BCOS_ENVIRONMENT", "staging")
STAGE_NAMES = {"staging": "BCOS-StagingStage", "production": "BCOS-ProductionStage"}
STACK_NAME = f"{STAGE_NAMES[ENVIRONMENT]}-ApplicationStack"


@pytest.fixture(scope="module")
def stack_outputs():
    """
    Retrieve CloudFormation stack outputs, skipping when the stage is not deployed.

    Returns:
        dict: Mapping of output keys to values
    """
    try:
        response = boto3.client("cloudformation").describe_stacks(StackName=STACK_NAME)
    except (BotoCoreError, ClientError) as e:
        pytest.skip(f"Stack {STACK_NAME} not deployed or no credentials: {e}")
    outputs = response["Stacks"][0].get("Outputs", [])
    return {output["OutputKey"]: output["OutputValue"] for output in outputs}


@pytest.fixture(scope="module")
def config():
    return load_environment_config(ENVIRONMENT)


def test_all_alarms_exist_with_naming_template(stack_outputs):
    """Test that the deployed stage has every alarm under its templated name"""
    cloudwatch = boto3.client("cloudwatch")
    paginator = cloudwatch.get_paginator("describe_alarms")
    names = set()
    for page in paginator.paginate(AlarmNamePrefix=f"BCOS-{ENVIRONMENT}-", AlarmTypes=["MetricAlarm"]):
        names.update(alarm["AlarmName"] for alarm in page["MetricAlarms"])

    expected = {f"BCOS-{ENVIRONMENT}-{kind}" for kind in ALARM_POLICIES}
    assert expected <= names


def test_alarms_notify_alert_topic(stack_outputs):
    """Test that deployed alarms notify the exported alert topic"""
    topic_arn = stack_outputs["AlertTopicArn"]
    response = boto3.client("cloudwatch").describe_alarms(
        AlarmNames=[f"BCOS-{ENVIRONMENT}-{spec.kind}" for spec in LOG_ALARMS],
    )

    assert len(response["MetricAlarms"]) == len(LOG_ALARMS)
    for alarm in response["MetricAlarms"]:
        assert alarm["AlarmActions"] == [topic_arn]


def test_service_health_composite_only_in_production(stack_outputs):
    """Test that the deployed composite exists only in production"""
    response = boto3.client("cloudwatch").describe_alarms(
        AlarmNames=[f"BCOS-{ENVIRONMENT}-ServiceHealth"], AlarmTypes=["CompositeAlarm"],
    )

    expected = 1 if ENVIRONMENT == "production" else 0
    assert len(response["CompositeAlarms"]) == expected


def test_web_acl_rule_order(stack_outputs, config):
    """Test that the deployed Web ACL rules match the composed order"""
    wafv2 = boto3.client("wafv2")
    name = f"BCOS-{ENVIRONMENT}-WebACL"
    summaries = wafv2.list_web_acls(Scope="REGIONAL")["WebACLs"]
    summary = next((acl for acl in summaries if acl["Name"] == name), None)
    if summary is None:
        pytest.skip(f"Web ACL {name} not found")

    web_acl = wafv2.get_web_acl(Name=name, Scope="REGIONAL", Id=summary["Id"])["WebACL"]
    deployed = sorted((rule["Priority"], rule["Name"]) for rule in web_acl["Rules"])

    expected = compose(
        ENVIRONMENT,
        config.waf.rate_limit_per_ip,
        config.waf.geo_blocking_enabled,
        config.waf.blocked_countries,
        config.waf.enable_managed_rules,
    )
    assert deployed == [(rule.priority, rule.name) for rule in expected]
