"""Docker backend pipeline construct module.

Continuously delivers a containerized backend:
1. Source: checks out the application repository through a CodeStar connection.
2. Build: runs the configured build commands, builds the Docker image and pushes
   it to an ECR repository named after the app, or to the one passed in.
3. Deploy: rolls the new image out to the backend's Fargate service. Only the
   image changes; the task definition family stays the same.
"""
from typing import Optional, Sequence

from constructs import Construct
from aws_cdk import (
    RemovalPolicy,
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as actions,
    aws_ecr as ecr,
    aws_ecs as ecs,
)

from building_blocks.pipeline.source import SourceRepository, checkout_action

IMAGE_DEFINITIONS_FILE = "imagedefinitions.json"
DEFAULT_BUILD_COMMANDS = ("mvn clean package",)
LATEST_TAG = "latest"


def image_repository(scope: Construct, construct_id: str, app_name: str) -> ecr.Repository:
    """ECR repository named after the app, kept when the stack is deleted."""
    return ecr.Repository(scope, construct_id,
        repository_name=app_name,
        image_scan_on_push=True,
        removal_policy=RemovalPolicy.RETAIN,
    )


class DockerBackendPipeline(Construct):
    """CodePipeline building a Docker image and deploying it to an ECS service.

    Images are pushed to ``ecr_repository`` when one is given, so the service's
    task definition can reference the same repository; otherwise the pipeline
    creates its own.
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 app_name: str,
                 pipeline_name: str,
                 code_star_connection_arn: str,
                 repository: SourceRepository,
                 service: ecs.IBaseService,
                 container_name: Optional[str] = None,
                 build_commands: Sequence[str] = DEFAULT_BUILD_COMMANDS,
                 ecr_repository: Optional[ecr.IRepository] = None) -> None:
        super().__init__(scope, construct_id)

        source_artifact = codepipeline.Artifact("Source")
        deploy_artifact = codepipeline.Artifact("Deploy")

        if ecr_repository is None:
            ecr_repository = image_repository(self, "ImageRepository", app_name)
        self.ecr_repository = ecr_repository

        self.build_project = self.docker_build_project(
            project_name=f"{pipeline_name}-build",
            container_name=container_name or app_name,
            build_commands=build_commands,
        )
        self.ecr_repository.grant_pull_push(self.build_project)

        self.pipeline = codepipeline.Pipeline(self, "Pipeline",
            pipeline_name=pipeline_name,
            cross_account_keys=False,
            stages=[
                codepipeline.StageProps(
                    stage_name="Source",
                    actions=[checkout_action(code_star_connection_arn, repository, source_artifact)],
                ),
                codepipeline.StageProps(
                    stage_name="Build",
                    actions=[
                        actions.CodeBuildAction(
                            action_name="Build",
                            project=self.build_project,
                            input=source_artifact,
                            outputs=[deploy_artifact],
                        )
                    ],
                ),
                codepipeline.StageProps(
                    stage_name="Deploy",
                    actions=[
                        actions.EcsDeployAction(
                            action_name="Deploy",
                            service=service,
                            input=deploy_artifact,
                        )
                    ],
                ),
            ],
        )

    def docker_build_project(self, project_name: str, container_name: str,
                             build_commands: Sequence[str]) -> codebuild.PipelineProject:
        """CodeBuild project that builds, tags and pushes the image.

        The image is tagged with the first 8 characters of the commit and with
        ``latest``; the commit tag is what ends up in the image definitions file.
        """
        return codebuild.PipelineProject(self, "BuildProject",
            project_name=project_name,
            environment=codebuild.BuildEnvironment(
                compute_type=codebuild.ComputeType.SMALL,
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
                privileged=True,
            ),
            environment_variables={
                "REPOSITORY_URI": codebuild.BuildEnvironmentVariable(
                    value=self.ecr_repository.repository_uri
                ),
                "CONTAINER_NAME": codebuild.BuildEnvironmentVariable(value=container_name),
            },
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "pre_build": {
                        "commands": [
                            'aws ecr get-login-password --region "$AWS_DEFAULT_REGION" '
                            '| docker login --username AWS --password-stdin "${REPOSITORY_URI%%/*}"',
                            'TAG="$(echo $CODEBUILD_RESOLVED_SOURCE_VERSION | head -c 8)"',
                        ],
                    },
                    "build": {
                        "commands": [
                            *build_commands,
                            'docker build --tag "$REPOSITORY_URI:$TAG" --tag "$REPOSITORY_URI:' + LATEST_TAG + '" .',
                        ],
                    },
                    "post_build": {
                        "commands": [
                            'docker push "$REPOSITORY_URI:$TAG"',
                            'docker push "$REPOSITORY_URI:' + LATEST_TAG + '"',
                            'printf \'[{"name":"%s","imageUri":"%s"}]\' "$CONTAINER_NAME" "$REPOSITORY_URI:$TAG" > '
                            + IMAGE_DEFINITIONS_FILE,
                        ],
                    },
                },
                "artifacts": {
                    "files": [IMAGE_DEFINITIONS_FILE],
                },
            }),
        )
