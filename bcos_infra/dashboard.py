"""
Dashboard layout.

Widgets are stacked in the order they are added. Nothing here computes values;
widgets only reference signals that already exist.

GraphWidget documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_cloudwatch/GraphWidget.html
"""
from aws_cdk import aws_cloudwatch as cloudwatch


class DashboardLayout:
    def __init__(self, scope, construct_id, dashboard_name) -> None:
        self.dashboard = cloudwatch.Dashboard(scope, construct_id, dashboard_name=dashboard_name)
        self.titles = []

    def add_widget(self, title, left, right=(), width=12, height=6):
        widget = cloudwatch.GraphWidget(
            title=title,
            left=[signal.metric() for signal in left],
            right=[signal.metric() for signal in right],
            width=width,
            height=height,
        )
        self.dashboard.add_widgets(widget)
        self.titles.append(title)
        return widget

    def add_alarm_status(self, title, alarms, width=24):
        widget = cloudwatch.AlarmStatusWidget(title=title, alarms=list(alarms), width=width)
        self.dashboard.add_widgets(widget)
        self.titles.append(title)
        return widget
