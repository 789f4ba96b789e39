"""Shared constants for the BCOS monitoring and WAF constructs."""

# Naming
NAME_PREFIX = "BCOS"
TOPIC_PREFIX = "bcos"

# Environments
PRODUCTION = "production"
STAGING = "staging"
SUPPORTED_ENVIRONMENTS = (STAGING, PRODUCTION)

# AWS metric namespaces
ECS_NAMESPACE = "AWS/ECS"
CONTAINER_INSIGHTS_NAMESPACE = "ECS/ContainerInsights"
ALB_NAMESPACE = "AWS/ApplicationELB"

# Dimension names
DIM_SERVICE = "ServiceName"
DIM_CLUSTER = "ClusterName"
DIM_LOAD_BALANCER = "LoadBalancer"
DIM_TARGET_GROUP = "TargetGroup"

# Alarm registry keys (alarms referenced by the service health composite)
ALARM_KEY_LOW_TASK_COUNT = "ecs-low-task-count"
ALARM_KEY_UNHEALTHY_TARGETS = "alb-unhealthy-targets"

# Log-derived metric names
METRIC_ERROR_COUNT = "ErrorCount"
METRIC_HEALTH_CHECK_FAILURES = "HealthCheckFailures"
METRIC_SECURITY_EVENTS = "SecurityEvents"
METRIC_AUTH_FAILURES = "AuthenticationFailures"
METRIC_DATABASE_ERRORS = "DatabaseErrors"
METRIC_PERMISSION_DENIALS = "PermissionDenials"

# WAF
HEALTH_CHECK_PATH_PREFIX = "/health"
API_PATH_PREFIX = "/api/"
API_RATE_LIMIT = 500
DEFAULT_RATE_LIMIT_PRODUCTION = 1000
DEFAULT_RATE_LIMIT_NON_PRODUCTION = 2000


def log_metric_namespace(environment):
    return f"{NAME_PREFIX}/{environment}"
