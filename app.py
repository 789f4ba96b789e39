#!/usr/bin/env python3
import logging
import os

import aws_cdk as cdk

from bcos_infra.application_stage import ApplicationStage
from bcos_infra.config import load_environment_config
from bcos_infra.constants import PRODUCTION, STAGING

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# Initialize CDK application
# Documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/App.html
app = cdk.App()

# Account and region are retrieved from environment variables or AWS CLI config
# Documentation: https://docs.aws.amazon.com/cdk/v2/guide/environments.html
env = cdk.Environment(
    account=os.getenv("CDK_DEFAULT_ACCOUNT"),
    region=os.getenv("CDK_DEFAULT_REGION", "us-east-1"),
)

# Optional context to synthesize a subset: cdk synth -c environments=staging
requested = app.node.try_get_context("environments")
environments = requested.split(",") if requested else [STAGING, PRODUCTION]

stage_ids = {STAGING: "BCOS-StagingStage", PRODUCTION: "BCOS-ProductionStage"}
for environment in environments:
    config = load_environment_config(environment.strip())
    ApplicationStage(app, stage_ids[config.environment], config=config, env=env)

# Synthesize CloudFormation templates into cdk.out
# Documentation: https://docs.aws.amazon.com/cdk/v2/guide/apps.html#apps_synth
app.synth()
