"""Source stage shared by the website and backend pipelines."""
from dataclasses import dataclass

from aws_cdk import (
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as actions,
)


@dataclass(frozen=True)
class SourceRepository:
    owner: str
    name: str
    branch: str = "main"


def checkout_action(connection_arn: str,
        repository: SourceRepository,
        output: codepipeline.Artifact) -> actions.CodeStarConnectionsSourceAction:
    """Check out ``repository`` through a CodeStar connection (GitHub, Bitbucket, GitLab)."""
    return actions.CodeStarConnectionsSourceAction(
        action_name="Checkout",
        connection_arn=connection_arn,
        owner=repository.owner,
        repo=repository.name,
        branch=repository.branch,
        output=output,
    )
