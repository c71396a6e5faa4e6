from typing import Optional

from aws_cdk import (
    CfnOutput,
    Environment,
    Stack,
)
from constructs import Construct

from .config import Settings
from .distribution import DistributionResources
from .logger import get_logger
from .network import VpcResources
from .pipeline import PipelineResources
from .secret import OriginSecret, create_origin_secret
from .service import EcsResources

logger = get_logger("docker-codebuild.stack")


class DockerCodeBuild(Stack):
    def __init__(
        self,
        scope: Construct,
        id: str,
        settings: Optional[Settings] = None,
        origin_secret: Optional[OriginSecret] = None,
        env: Optional[Environment] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, id, env=env, **kwargs)
        settings = settings or Settings()

        # one secret per stack; the distribution and the listener both get
        # this same object
        if origin_secret is None:
            origin_secret = create_origin_secret(
                header_name=settings.header_name,
                length=settings.secret_length,
                value=settings.secret,
            )
        self.origin_secret = origin_secret
        logger.info("origin header for %s is %s", id, origin_secret.header_name)

        self.vpc_resources = VpcResources(self, "vpcResources")

        self.ecs_resources = EcsResources(
            self, "ecsResources",
            vpc=self.vpc_resources.vpc,
            fargate_alb_security_group=self.vpc_resources.fargate_alb_security_group,
            origin_secret=origin_secret,
        )

        self.pipeline_resources = PipelineResources(
            self, "pipelineResources",
            fargate_service=self.ecs_resources.fargate_service,
            repository_name=settings.repository_name,
            image_tag=settings.image_tag,
        )

        self.distribution_resources = DistributionResources(
            self, "distributionResources",
            application_load_balancer=self.ecs_resources.application_load_balancer,
            origin_secret=origin_secret,
        )

        CfnOutput(
            self, "distributionDomainName",
            value=self.distribution_resources.distribution.distribution_domain_name
        )
