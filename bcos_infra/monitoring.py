"""
Monitoring construct: alarms, composite service health, dashboard and alert topic
for one environment.

Construction order matters:
1. every threshold policy is resolved first, so a missing environment entry fails
   before any resource exists
2. topic and subscriptions, then the dashboard
3. ECS alarms, ALB alarms, then the log-derived metric filters and their alarms
4. dashboard widgets
5. the production-only service health composite, which reads the alarm registry

CloudWatch alarms documentation: https://docs.aws.amazon.com/AmazonCloudWatch/latest/monitoring/AlarmThatSendsEmail.html
ECS metrics: https://docs.aws.amazon.com/AmazonECS/latest/developerguide/cloudwatch-metrics.html
Container Insights metrics: https://docs.aws.amazon.com/AmazonCloudWatch/latest/monitoring/Container-Insights-metrics-ECS.html
ALB metrics: https://docs.aws.amazon.com/elasticloadbalancing/latest/application/load-balancer-cloudwatch-metrics.html
"""
import logging
from collections import namedtuple
from dataclasses import replace

from aws_cdk import Duration, aws_cloudwatch as cloudwatch
from constructs import Construct

from .alarms import AlarmBuilder, AlarmRegistry
from .composite import combine
from .constants import (
    ALARM_KEY_LOW_TASK_COUNT,
    ALARM_KEY_UNHEALTHY_TARGETS,
    ALB_NAMESPACE,
    CONTAINER_INSIGHTS_NAMESPACE,
    DIM_CLUSTER,
    DIM_LOAD_BALANCER,
    DIM_SERVICE,
    DIM_TARGET_GROUP,
    ECS_NAMESPACE,
    METRIC_AUTH_FAILURES,
    METRIC_DATABASE_ERRORS,
    METRIC_ERROR_COUNT,
    METRIC_HEALTH_CHECK_FAILURES,
    METRIC_PERMISSION_DENIALS,
    METRIC_SECURITY_EVENTS,
    NAME_PREFIX,
    PRODUCTION,
    TOPIC_PREFIX,
    log_metric_namespace,
)
from .dashboard import DashboardLayout
from .identifiers import Unresolved, as_identifier, bind
from .metric_filters import AnyTermMatch, LiteralPatternMatch, compile_metric_filter
from .notifications import create_topic, subscribe_email
from .signals import MetricSignal
from .thresholds import ALARM_POLICIES, resolve_all

logger = logging.getLogger(__name__)

LogAlarm = namedtuple("LogAlarm", ["filter_id", "alarm_id", "metric_name", "match", "kind", "description"])

# Log-derived signals, in creation order
LOG_ALARMS = (
    LogAlarm(
        "ErrorMetricFilter", "HighErrorRateAlarm", METRIC_ERROR_COUNT,
        AnyTermMatch("ERROR", "FATAL", "panic", "exception"),
        "App-HighErrorRate", "Application is logging high error rates for {env}",
    ),
    LogAlarm(
        "HealthCheckFailureFilter", "HealthCheckFailureAlarm", METRIC_HEALTH_CHECK_FAILURES,
        LiteralPatternMatch('[timestamp, level="ERROR", message="*health*"]'),
        "App-HealthCheckFailures", "Application health checks are failing for {env}",
    ),
    LogAlarm(
        "SecurityEventFilter", "SecurityEventAlarm", METRIC_SECURITY_EVENTS,
        AnyTermMatch('component="security"', "security_breach", "csrf_failed",
                     "injection_attempt", "suspicious_activity"),
        "App-SecurityEvents", "Security events detected for {env}",
    ),
    LogAlarm(
        "AuthFailureFilter", "AuthFailureAlarm", METRIC_AUTH_FAILURES,
        LiteralPatternMatch('[..., component="auth", success=false, ...]'),
        "App-AuthFailures", "High authentication failure rate for {env}",
    ),
    LogAlarm(
        "DatabaseErrorFilter", "DatabaseErrorAlarm", METRIC_DATABASE_ERRORS,
        AnyTermMatch('component="db"', "database error", "connection failed",
                     "query timeout", "deadlock"),
        "App-DatabaseErrors", "High database error rate for {env}",
    ),
    LogAlarm(
        "RBACPermissionDeniedFilter", "PermissionDeniedAlarm", METRIC_PERMISSION_DENIALS,
        AnyTermMatch('event="rbac_permission_denied"', "permission_denied",
                     "insufficient_permissions"),
        "App-PermissionDenials", "High RBAC permission denial rate for {env}",
    ),
)


class Monitoring(Construct):
    def __init__(self, scope: Construct, construct_id: str, *, environment: str, encryption_key,
                 cluster_name: str, service_name: str, load_balancer_full_name,
                 target_group_full_name, log_group, alert_emails=(),
                 enable_detailed_monitoring=None, prefix=NAME_PREFIX) -> None:
        super().__init__(scope, construct_id)

        self.environment = environment
        self.prefix = prefix
        if enable_detailed_monitoring is None:
            enable_detailed_monitoring = environment == PRODUCTION
        self.detailed_monitoring = enable_detailed_monitoring

        # Fail before any resource definition exists
        resolve_all(ALARM_POLICIES, environment)

        self.alert_topic = create_topic(
            self, "AlertTopic",
            name=f"{TOPIC_PREFIX}-{environment}-alerts",
            display_name=f"{prefix} {environment} Alerts",
            encryption_key=encryption_key,
        )
        for address in alert_emails or ():
            subscribe_email(self.alert_topic, address)

        self.layout = DashboardLayout(self, "Dashboard", f"{prefix}-{environment}-Dashboard")
        self.dashboard = self.layout.dashboard

        self.registry = AlarmRegistry()
        self.builder = AlarmBuilder(self, prefix, environment, self.alert_topic, self.registry)

        load_balancer_id = as_identifier(
            load_balancer_full_name, "LoadBalancerFullName",
            "Full name of the application load balancer (app/<name>/<id>)",
        )
        target_group_id = as_identifier(
            target_group_full_name, "TargetGroupFullName",
            "Full name of the target group (targetgroup/<name>/<id>)",
        )
        self.unresolved_bindings = [
            identifier.name for identifier in (load_balancer_id, target_group_id)
            if isinstance(identifier, Unresolved)
        ]
        load_balancer = bind(self, load_balancer_id)
        target_group = bind(self, target_group_id)

        service_dimensions = {DIM_SERVICE: service_name, DIM_CLUSTER: cluster_name}
        self.cpu_signal = MetricSignal(ECS_NAMESPACE, "CPUUtilization", service_dimensions)
        self.memory_signal = MetricSignal(ECS_NAMESPACE, "MemoryUtilization", service_dimensions)
        self.request_count_signal = MetricSignal(
            ALB_NAMESPACE, "RequestCount", {DIM_LOAD_BALANCER: load_balancer}, statistic="Sum",
        )
        self.response_time_signal = MetricSignal(
            ALB_NAMESPACE, "TargetResponseTime", {DIM_LOAD_BALANCER: load_balancer},
        )

        self._create_ecs_alarms(service_dimensions)
        self._create_alb_alarms(load_balancer, target_group)
        self.log_signals = self._create_log_alarms(log_group)
        self._add_dashboard_widgets()

        self.service_health = combine(
            self, "ServiceHealth-Composite",
            name=f"{prefix}-{environment}-ServiceHealth",
            description=f"Overall service health for {environment}",
            alarm_keys=(ALARM_KEY_LOW_TASK_COUNT, ALARM_KEY_UNHEALTHY_TARGETS),
            registry=self.registry,
            topic=self.alert_topic,
            environment=environment,
        )

    @property
    def alarms(self):
        return self.registry.definitions

    def _alarm(self, construct_id, kind, description, signal, key=None, treat_missing_data=None):
        return self.builder.build_alarm(
            construct_id, kind, description.format(env=self.environment), signal,
            ALARM_POLICIES[kind], key=key, treat_missing_data=treat_missing_data,
        )

    def _create_ecs_alarms(self, dimensions):
        self._alarm(
            "ECSLowTaskCountAlarm", "ECS-LowTaskCount",
            "ECS service has fewer running tasks than desired for {env}",
            MetricSignal(CONTAINER_INSIGHTS_NAMESPACE, "RunningTaskCount", dimensions,
                         period=Duration.minutes(1)),
            key=ALARM_KEY_LOW_TASK_COUNT,
            # A service with no running tasks stops reporting
            treat_missing_data=cloudwatch.TreatMissingData.BREACHING,
        )
        self._alarm(
            "ECSHighCPUAlarm", "ECS-HighCPU",
            "ECS service CPU utilization is high for {env}", self.cpu_signal,
        )
        self._alarm(
            "ECSHighMemoryAlarm", "ECS-HighMemory",
            "ECS service memory utilization is high for {env}", self.memory_signal,
        )

    def _create_alb_alarms(self, load_balancer, target_group):
        self._alarm(
            "ALBUnhealthyTargetsAlarm", "ALB-UnhealthyTargets",
            "ALB has unhealthy targets for {env}",
            MetricSignal(
                ALB_NAMESPACE, "UnHealthyHostCount",
                {DIM_LOAD_BALANCER: load_balancer, DIM_TARGET_GROUP: target_group},
                statistic="Maximum", period=Duration.minutes(1),
            ),
            key=ALARM_KEY_UNHEALTHY_TARGETS,
        )
        self._alarm(
            "ALBHigh5XXAlarm", "ALB-High5XXErrors",
            "ALB is returning high 5XX errors for {env}",
            MetricSignal(ALB_NAMESPACE, "HTTPCode_ELB_5XX_Count", {DIM_LOAD_BALANCER: load_balancer},
                         statistic="Sum"),
        )
        self._alarm(
            "ALBHighResponseTimeAlarm", "ALB-HighResponseTime",
            "ALB response time is high for {env}", self.response_time_signal,
        )

    def _create_log_alarms(self, log_group):
        namespace = log_metric_namespace(self.environment)
        signals = {}
        for spec in LOG_ALARMS:
            signal = compile_metric_filter(
                self, spec.filter_id, log_group, spec.match, namespace, spec.metric_name,
            )
            self._alarm(spec.alarm_id, spec.kind, spec.description, signal)
            signals[spec.metric_name] = signal
        return signals

    def _add_dashboard_widgets(self):
        env = self.environment
        log = self.log_signals
        self.layout.add_widget(
            f"ECS Service Metrics - {env}", left=[self.cpu_signal], right=[self.memory_signal],
        )
        self.layout.add_widget(
            f"ALB Metrics - {env}",
            left=[self.request_count_signal], right=[self.response_time_signal],
        )
        self.layout.add_widget(f"Application Errors - {env}", left=[log[METRIC_ERROR_COUNT]])
        self.layout.add_widget(
            f"Security & Authentication Events - {env}",
            left=[
                _styled(log[METRIC_SECURITY_EVENTS], "Security Events", "#d13212"),
                _styled(log[METRIC_AUTH_FAILURES], "Auth Failures", "#ff9900"),
            ],
            right=[_styled(log[METRIC_PERMISSION_DENIALS], "Permission Denials", "#1f77b4")],
        )
        self.layout.add_widget(
            f"Database Health - {env}",
            left=[_styled(log[METRIC_DATABASE_ERRORS], "Database Errors", "#d62728")],
        )
        if self.detailed_monitoring:
            self.layout.add_alarm_status(
                f"Alarm Status - {env}", [definition.alarm for definition in self.alarms],
            )


def _styled(signal, label, color):
    return replace(signal, label=label, color=color)
