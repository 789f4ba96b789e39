"""
Notification Router

One SNS topic per deployment. Every alarm and composite alarm publishes its
ALARM transition to this topic; email endpoints subscribe to it directly.

SNS Topic documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_sns/Topic.html
EmailSubscription documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk.aws_sns_subscriptions/EmailSubscription.html
"""
import logging

from aws_cdk import aws_sns as sns, aws_sns_subscriptions as subscriptions

logger = logging.getLogger(__name__)


def create_topic(scope, construct_id, name, display_name, encryption_key=None) -> sns.Topic:
    return sns.Topic(
        scope, construct_id,
        topic_name=name,
        display_name=display_name,
        master_key=encryption_key,
    )


def subscribe_email(topic, address):
    # Deliverability is not checked; SNS sends a confirmation mail on deploy
    topic.add_subscription(subscriptions.EmailSubscription(address, json=False))
    logger.info("Subscribed %s to %s", address, topic.node.id)
