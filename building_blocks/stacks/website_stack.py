from typing import Optional

from constructs import Construct
from aws_cdk import (
    Stack,
    Tags,
    aws_route53 as route53,
)

from building_blocks.pipeline.source import SourceRepository
from building_blocks.pipeline.static_website_pipeline import (
    StaticWebsitePipeline,
    StaticWebsitePipelineType,
)
from building_blocks.website.static_website import StaticWebsite, StaticWebsiteType


class WebsiteStack(Stack):
    """Static website, plus its publishing pipeline when a source repository is given.

    When ``zone_name`` is set the hosted zone is looked up, which requires an
    explicit account and region on the stack.
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 site_name: str,
                 website_type: StaticWebsiteType = StaticWebsiteType.SIMPLE,
                 domain_name: Optional[str] = None,
                 zone_name: Optional[str] = None,
                 code_star_connection_arn: Optional[str] = None,
                 repository: Optional[SourceRepository] = None,
                 **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        hosted_zone = None
        if zone_name:
            hosted_zone = route53.HostedZone.from_lookup(self, "HostedZone", domain_name=zone_name)

        self.website = StaticWebsite(self, "Website",
            name=site_name,
            website_type=website_type,
            hosted_zone=hosted_zone,
            domain_name=domain_name,
        )

        self.pipeline = None
        if repository is not None:
            if not code_star_connection_arn:
                raise ValueError("code_star_connection_arn is required when a source repository is configured")
            pipeline_type = (StaticWebsitePipelineType.ANGULAR if website_type is StaticWebsiteType.SPA
                             else StaticWebsitePipelineType.SIMPLE)
            self.pipeline = StaticWebsitePipeline(self, "Pipeline",
                pipeline_name=f"site-{site_name}-pipeline".replace(".", "-"),
                bucket=self.website.content_bucket,
                code_star_connection_arn=code_star_connection_arn,
                repository=repository,
                pipeline_type=pipeline_type,
            )

        Tags.of(self).add("Project", site_name)
