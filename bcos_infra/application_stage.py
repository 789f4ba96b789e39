from aws_cdk import Stage
from constructs import Construct

from .application_stack import ApplicationStack
from .config import EnvironmentConfig


class ApplicationStage(Stage):
    """
    Deployment stage for one BCOS environment.

    Each stage holds its own ApplicationStack, so staging and production each get
    their own alert topic, alarm registry, dashboard and Web ACL.
    """

    def __init__(self, scope: Construct, construct_id: str, *, config: EnvironmentConfig, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Stack documentation: https://docs.aws.amazon.com/cdk/api/v2/python/aws_cdk/Stack.html
        self.stack = ApplicationStack(
            self,
            "ApplicationStack",
            config=config,
        )
