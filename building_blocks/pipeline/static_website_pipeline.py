"""Static website pipeline construct module.

Builds (when needed) and publishes a website repository into the content bucket
of a StaticWebsite:
- SIMPLE: Source -> Deploy, the checked out files are the website
- ANGULAR: Source -> Build (npm + Angular CLI) -> Deploy the ``dist`` output
"""
from enum import Enum

from constructs import Construct
from aws_cdk import (
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as actions,
    aws_s3 as s3,
)

from building_blocks.pipeline.source import SourceRepository, checkout_action


class StaticWebsitePipelineType(Enum):
    SIMPLE = "simple"
    ANGULAR = "angular"


class StaticWebsitePipeline(Construct):
    """CodePipeline deploying a website repository to an S3 bucket."""

    def __init__(self, scope: Construct, construct_id: str, *,
                 pipeline_name: str,
                 bucket: s3.IBucket,
                 code_star_connection_arn: str,
                 repository: SourceRepository,
                 pipeline_type: StaticWebsitePipelineType = StaticWebsitePipelineType.SIMPLE) -> None:
        super().__init__(scope, construct_id)

        source_artifact = codepipeline.Artifact("Source")

        stages = [
            codepipeline.StageProps(
                stage_name="Source",
                actions=[checkout_action(code_star_connection_arn, repository, source_artifact)],
            )
        ]

        deploy_artifact = source_artifact
        self.build_project = None
        if pipeline_type is StaticWebsitePipelineType.ANGULAR:
            deploy_artifact = codepipeline.Artifact("Deploy")
            self.build_project = self.angular_build_project(f"{pipeline_name}-build")
            stages.append(codepipeline.StageProps(
                stage_name="Build",
                actions=[
                    actions.CodeBuildAction(
                        action_name="Build",
                        project=self.build_project,
                        input=source_artifact,
                        outputs=[deploy_artifact],
                    )
                ],
            ))

        stages.append(codepipeline.StageProps(
            stage_name="Deploy",
            actions=[
                actions.S3DeployAction(
                    action_name="Deploy",
                    bucket=bucket,
                    input=deploy_artifact,
                    extract=True,
                )
            ],
        ))

        self.pipeline = codepipeline.Pipeline(self, "Pipeline",
            pipeline_name=pipeline_name,
            cross_account_keys=False,
            stages=stages,
        )

    def angular_build_project(self, project_name: str) -> codebuild.PipelineProject:
        return codebuild.PipelineProject(self, "BuildProject",
            project_name=project_name,
            environment=codebuild.BuildEnvironment(
                compute_type=codebuild.ComputeType.SMALL,
                build_image=codebuild.LinuxBuildImage.STANDARD_7_0,
            ),
            build_spec=codebuild.BuildSpec.from_object({
                "version": "0.2",
                "phases": {
                    "install": {
                        "runtime-versions": {"nodejs": 18},
                        "commands": ["npm install -g @angular/cli", "npm ci"],
                    },
                    "build": {
                        "commands": ["ng build --configuration production --output-path=dist"],
                    },
                },
                "artifacts": {
                    "base-directory": "dist",
                    "files": ["**/*"],
                },
            }),
        )
