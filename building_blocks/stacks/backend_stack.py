import dataclasses
from typing import Optional

from constructs import Construct
from aws_cdk import (
    Stack,
    Tags,
    aws_ecs as ecs,
    aws_route53 as route53,
)

from building_blocks.backend.docker_backend import DockerBackend
from building_blocks.backend.resolution import DeploymentIntent
from building_blocks.pipeline.docker_backend_pipeline import (
    LATEST_TAG,
    DockerBackendPipeline,
    image_repository,
)
from building_blocks.pipeline.source import SourceRepository


class BackendStack(Stack):
    """Docker backend, plus its delivery pipeline when a source repository is given.

    When ``zone_name`` is set the hosted zone is looked up and attached to the
    intent, which requires an explicit account and region on the stack.

    With a pipeline the ECR repository is declared first and the backend's
    container runs its ``latest`` image, so redeploying the stack keeps the image
    the pipeline last pushed instead of reverting to a placeholder.
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 intent: DeploymentIntent,
                 zone_name: Optional[str] = None,
                 code_star_connection_arn: Optional[str] = None,
                 repository: Optional[SourceRepository] = None,
                 **kwargs) -> None:
        if repository is not None and not code_star_connection_arn:
            raise ValueError("code_star_connection_arn is required when a source repository is configured")
        super().__init__(scope, construct_id, **kwargs)

        if zone_name:
            hosted_zone = route53.HostedZone.from_lookup(self, "HostedZone", domain_name=zone_name)
            intent = dataclasses.replace(intent, hosted_zone=hosted_zone)

        self.image_repository = None
        if repository is not None:
            self.image_repository = image_repository(self, "ImageRepository", intent.app_name)
            intent = dataclasses.replace(intent,
                container_image=ecs.ContainerImage.from_ecr_repository(self.image_repository, LATEST_TAG),
            )

        self.backend = DockerBackend(self, "Backend", intent=intent)

        self.pipeline = None
        if repository is not None:
            self.pipeline = DockerBackendPipeline(self, "Pipeline",
                app_name=intent.app_name,
                pipeline_name=f"{intent.app_name}-pipeline",
                code_star_connection_arn=code_star_connection_arn,
                repository=repository,
                service=self.backend.service,
                container_name=self.backend.container.container_name,
                ecr_repository=self.image_repository,
            )

        Tags.of(self).add("Project", intent.app_name)
