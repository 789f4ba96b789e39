"""
Unit Tests for environment configuration loading
"""

import json

import pytest
from pydantic import ValidationError

from bcos_infra.config import DEFAULT_CONFIG_DIR, load_environment_config, parse_environment_config
from bcos_infra.errors import ConfigurationError

MINIMAL = {
    "ecs": {"clusterName": "cluster", "serviceName": "service"},
    "logGroupName": "/ecs/app",
}


def _raw(environment, **extra):
    raw = dict(MINIMAL, environment=environment)
    raw.update(extra)
    return raw


def test_shipped_configs_load():
    """Test that both shipped configuration files load"""
    staging = load_environment_config("staging")
    production = load_environment_config("production")

    assert staging.environment == "staging"
    assert staging.waf.rate_limit_per_ip == 2000
    assert staging.waf.geo_blocking_enabled is False
    assert production.waf.rate_limit_per_ip == 1000
    assert production.waf.enable_managed_rules is True
    assert production.is_production


def test_production_defaults():
    """Test that production defaults apply when optional keys are absent"""
    config = parse_environment_config(_raw("production"))

    assert config.waf.rate_limit_per_ip == 1000
    assert config.waf.enable_managed_rules is True
    assert config.detailed_monitoring is True
    assert config.alert_emails == []
    assert config.waf.geo_blocking_enabled is False
    assert config.waf.blocked_countries == ()


def test_staging_defaults():
    """Test that staging defaults apply when optional keys are absent"""
    config = parse_environment_config(_raw("staging"))

    assert config.waf.rate_limit_per_ip == 2000
    assert config.waf.enable_managed_rules is False
    assert config.detailed_monitoring is False
    assert config.auto_scaling.enabled is False
    assert config.load_balancer.full_name is None


def test_geo_blocking_and_autoscaling_parsed():
    """Test that nested geo blocking and autoscaling sections are read"""
    config = parse_environment_config(_raw(
        "production",
        waf={"geoBlocking": {"enabled": True, "blockedCountries": ["CN", "RU"]}},
        ecs={"clusterName": "c", "serviceName": "s",
             "autoScaling": {"enabled": True, "minCapacity": 2, "maxCapacity": 8,
                             "scaleOutCooldown": 60}},
    ))

    assert config.waf.blocked_countries == ("CN", "RU")
    assert config.auto_scaling.max_capacity == 8
    assert config.auto_scaling.scale_out_cooldown == 60
    assert config.auto_scaling.scale_in_cooldown == 300


def test_unknown_environment_rejected():
    """Test that an unsupported environment is a ConfigurationError"""
    with pytest.raises(ConfigurationError):
        load_environment_config("development")
    with pytest.raises(ConfigurationError):
        parse_environment_config(_raw("development"))


def test_missing_required_key_rejected():
    """Test that a missing required key names the key"""
    raw = _raw("staging")
    del raw["logGroupName"]

    with pytest.raises(ConfigurationError, match="logGroupName"):
        parse_environment_config(raw)


def test_blocked_countries_must_be_a_list():
    """Test that a bare string is not accepted as a country list"""
    with pytest.raises(ConfigurationError):
        parse_environment_config(_raw("production", waf={"geoBlocking": {"blockedCountries": "CN"}}))


def test_missing_file_rejected(tmp_path):
    """Test that a missing configuration file is a ConfigurationError"""
    with pytest.raises(ConfigurationError, match="not found"):
        load_environment_config("staging", config_dir=tmp_path)


def test_invalid_json_rejected(tmp_path):
    """Test that unparseable JSON is a ConfigurationError"""
    (tmp_path / "staging.json").write_text("{not json")

    with pytest.raises(ConfigurationError, match="Invalid JSON"):
        load_environment_config("staging", config_dir=tmp_path)


def test_environment_mismatch_rejected(tmp_path):
    """Test that a file declaring another environment is rejected"""
    (tmp_path / "staging.json").write_text(json.dumps(_raw("production")))

    with pytest.raises(ConfigurationError, match="expected 'staging'"):
        load_environment_config("staging", config_dir=tmp_path)


def _shipped(environment):
    with open(DEFAULT_CONFIG_DIR / f"{environment}.json") as f:
        return json.load(f)


def test_string_boolean_rejected():
    """Test that the string "false" is rejected rather than read as true"""
    raw = _shipped("staging")
    raw["waf"]["geoBlocking"]["enabled"] = "false"

    with pytest.raises(ConfigurationError, match="waf.geoBlocking.enabled"):
        parse_environment_config(raw)


def test_null_rate_limit_rejected():
    """Test that a null rate limit is a ConfigurationError, not a TypeError"""
    raw = _shipped("staging")
    raw["waf"]["rateLimitPerIP"] = None

    with pytest.raises(ConfigurationError, match="rateLimitPerIP"):
        parse_environment_config(raw)


def test_rate_limit_below_waf_minimum_rejected():
    """https://docs.aws.amazon.com/waf/latest/developerguide/waf-rule-statement-type-rate-based-high-level-settings.html"""
    raw = _shipped("production")
    raw["waf"]["rateLimitPerIP"] = 9

    with pytest.raises(ConfigurationError, match="rateLimitPerIP"):
        parse_environment_config(raw)


@pytest.mark.parametrize("countries", [[1, None], ["china"], ["cn"]])
def test_blocked_country_entries_validated(countries):
    """Test that every blocked country is a two-letter ISO code"""
    raw = _shipped("production")
    raw["waf"]["geoBlocking"] = {"enabled": True, "blockedCountries": countries}

    with pytest.raises(ConfigurationError, match="blockedCountries"):
        parse_environment_config(raw)


def test_unknown_key_rejected():
    """Test that unknown configuration keys are rejected"""
    raw = _shipped("staging")
    raw["ecs"]["desiredCount"] = 2

    with pytest.raises(ConfigurationError, match="desiredCount"):
        parse_environment_config(raw)


def test_min_capacity_above_max_rejected():
    """Test that autoscaling minCapacity may not exceed maxCapacity"""
    raw = _shipped("production")
    raw["ecs"]["autoScaling"].update(minCapacity=10, maxCapacity=2)

    with pytest.raises(ConfigurationError, match="minCapacity"):
        parse_environment_config(raw)


def test_validation_error_is_chained():
    """Test that schema errors carry the source and the underlying ValidationError"""
    raw = _shipped("staging")
    raw["monitoring"]["alertEmails"] = "oncall@example.com"

    with pytest.raises(ConfigurationError) as excinfo:
        parse_environment_config(raw, source="staging.json")

    assert str(excinfo.value).startswith("staging.json: ")
    assert isinstance(excinfo.value.__cause__, ValidationError)
