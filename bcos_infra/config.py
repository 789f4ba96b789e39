"""
Per-environment configuration.

One JSON file per supported environment lives under config/ at the repository
root. Files are read once at synthesis time and validated into pydantic models;
anything missing or malformed raises ConfigurationError so `cdk synth` stops
before a template is written.

Pydantic models: https://docs.pydantic.dev/latest/concepts/models/
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    constr,
    model_validator,
)

from .constants import (
    DEFAULT_RATE_LIMIT_NON_PRODUCTION,
    DEFAULT_RATE_LIMIT_PRODUCTION,
    PRODUCTION,
    STAGING,
    SUPPORTED_ENVIRONMENTS,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

# ISO 3166-1 alpha-2, as the WAF geo match statement expects
CountryCode = constr(strict=True, pattern=r"^[A-Z]{2}$")
NonEmptyStr = constr(strict=True, min_length=1)


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class AutoScalingConfig(_Section):
    enabled: StrictBool = False
    min_capacity: StrictInt = Field(1, alias="minCapacity", ge=1)
    max_capacity: StrictInt = Field(1, alias="maxCapacity", ge=1)
    target_cpu_utilization: StrictFloat = Field(70, alias="targetCpuUtilization", gt=0, le=100)
    target_memory_utilization: StrictFloat = Field(80, alias="targetMemoryUtilization", gt=0, le=100)
    scale_out_cooldown: StrictInt = Field(300, alias="scaleOutCooldown", ge=0)
    scale_in_cooldown: StrictInt = Field(300, alias="scaleInCooldown", ge=0)

    @model_validator(mode="after")
    def _capacity_range(self):
        if self.min_capacity > self.max_capacity:
            raise ValueError(
                f"minCapacity ({self.min_capacity}) exceeds maxCapacity ({self.max_capacity})"
            )
        return self


class EcsConfig(_Section):
    cluster_name: NonEmptyStr = Field(alias="clusterName")
    service_name: NonEmptyStr = Field(alias="serviceName")
    auto_scaling: AutoScalingConfig = Field(default_factory=AutoScalingConfig, alias="autoScaling")


class GeoBlockingConfig(_Section):
    enabled: StrictBool = False
    blocked_countries: Tuple[CountryCode, ...] = Field((), alias="blockedCountries")


class WafLoggingSettings(_Section):
    enabled: StrictBool = False


class WafConfig(_Section):
    # Left unset here; EnvironmentConfig fills in the environment default
    # https://docs.aws.amazon.com/waf/latest/developerguide/waf-rule-statement-type-rate-based-high-level-settings.html
    rate_limit_per_ip: StrictInt = Field(None, alias="rateLimitPerIP", ge=10)
    enable_managed_rules: StrictBool = Field(None, alias="enableManagedRules")
    geo_blocking: GeoBlockingConfig = Field(default_factory=GeoBlockingConfig, alias="geoBlocking")
    logging: WafLoggingSettings = Field(default_factory=WafLoggingSettings)

    @property
    def geo_blocking_enabled(self):
        return self.geo_blocking.enabled

    @property
    def blocked_countries(self):
        return self.geo_blocking.blocked_countries

    @property
    def logging_enabled(self):
        return self.logging.enabled


class MonitoringConfig(_Section):
    detailed_monitoring: StrictBool = Field(None, alias="detailedMonitoring")
    alert_emails: List[NonEmptyStr] = Field(default_factory=list, alias="alertEmails")


class LoadBalancerConfig(_Section):
    arn: Optional[StrictStr] = None
    full_name: Optional[StrictStr] = Field(None, alias="fullName")
    target_group_full_name: Optional[StrictStr] = Field(None, alias="targetGroupFullName")


class EnvironmentConfig(_Section):
    environment: Literal[STAGING, PRODUCTION]
    domain: Optional[StrictStr] = None
    ecs: EcsConfig
    log_group_name: NonEmptyStr = Field(alias="logGroupName")
    waf: WafConfig = Field(default_factory=WafConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    load_balancer: LoadBalancerConfig = Field(default_factory=LoadBalancerConfig, alias="loadBalancer")
    kms_key_arn: Optional[StrictStr] = Field(None, alias="kmsKeyArn")
    tags: Dict[StrictStr, StrictStr] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _environment_defaults(self):
        production = self.is_production
        if self.waf.rate_limit_per_ip is None:
            self.waf.rate_limit_per_ip = (
                DEFAULT_RATE_LIMIT_PRODUCTION if production else DEFAULT_RATE_LIMIT_NON_PRODUCTION
            )
        if self.waf.enable_managed_rules is None:
            self.waf.enable_managed_rules = production
        if self.monitoring.detailed_monitoring is None:
            self.monitoring.detailed_monitoring = production
        return self

    @property
    def is_production(self):
        return self.environment == PRODUCTION

    @property
    def cluster_name(self):
        return self.ecs.cluster_name

    @property
    def service_name(self):
        return self.ecs.service_name

    @property
    def auto_scaling(self):
        return self.ecs.auto_scaling

    @property
    def detailed_monitoring(self):
        return self.monitoring.detailed_monitoring

    @property
    def alert_emails(self):
        return self.monitoring.alert_emails


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in e['loc']) or '<root>'}: {e['msg']}"
        for e in error.errors()
    )


def parse_environment_config(raw, source="<config>") -> EnvironmentConfig:
    try:
        config = EnvironmentConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"{source}: {_describe(e)}") from e

    if not config.alert_emails:
        logger.info("No alert emails configured for %s; alarms publish to the topic only", config.environment)
    return config


def load_environment_config(environment, config_dir=None) -> EnvironmentConfig:
    """Read config/<environment>.json and validate it."""
    if environment not in SUPPORTED_ENVIRONMENTS:
        raise ConfigurationError(
            f"Unsupported environment '{environment}' (expected one of {', '.join(SUPPORTED_ENVIRONMENTS)})"
        )

    path = Path(config_dir or DEFAULT_CONFIG_DIR) / f"{environment}.json"
    try:
        with open(path) as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

    config = parse_environment_config(raw, source=str(path))
    if config.environment != environment:
        raise ConfigurationError(
            f"{path}: declares environment '{config.environment}', expected '{environment}'"
        )
    logger.info("Loaded %s configuration from %s", environment, path)
    return config
