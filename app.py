#!/usr/bin/env python3
"""CDK application entrypoint.

Defines and synthesizes the stacks for one environment:
1. BackendStack: Fargate backend behind an HTTPS load balancer, with its delivery pipeline.
2. WebsiteStack: S3 + CloudFront static website, with its publishing pipeline.

Select the environment with ``cdk synth -c environment=<name>``.
"""

import aws_cdk as cdk
from building_blocks.backend.resolution import CapacityBounds, DeploymentIntent, Sizing
from building_blocks.pipeline.source import SourceRepository
from building_blocks.stacks.backend_stack import BackendStack
from building_blocks.stacks.website_stack import WebsiteStack
from building_blocks.website.static_website import StaticWebsiteType


def source_repository(context: dict):
    if not context:
        return None
    return SourceRepository(
        owner=context["owner"],
        name=context["name"],
        branch=context.get("branch", "main"),
    )


app = cdk.App()


env_name = app.node.try_get_context("environment") or "dev"
env_context = app.node.try_get_context(env_name)
if not env_context:
    raise ValueError(f"No context found for environment '{env_name}'. Available environments: dev, prod")

app_name = app.node.try_get_context("app_name")
if not app_name:
    raise ValueError("No 'app_name' found in context")

env = cdk.Environment(
    account=env_context["account_id"],
    region=env_context["region"]
)

print(f"Synthesizing stacks for environment: {env_name} (Account: {env.account}, Region: {env.region})")

backend_context = env_context["backend"]
sizing = backend_context.get("sizing", {})
capacity = backend_context.get("capacity")

backend_stack = BackendStack(app, f"{app_name}-{env_name}-backend",
    intent=DeploymentIntent(
        app_name=f"{app_name}-{env_name}",
        domain_name=backend_context.get("domain_name"),
        certificate_arn=backend_context.get("certificate_arn"),
        sizing=Sizing(cpu=sizing.get("cpu"), memory_limit_mib=sizing.get("memory_limit_mib")),
        container_image=backend_context.get("container_image"),
        container_port=backend_context.get("container_port"),
        health_check_path=backend_context.get("health_check_path"),
        capacity=CapacityBounds(**capacity) if capacity else None,
    ),
    zone_name=backend_context.get("zone_name"),
    code_star_connection_arn=env_context.get("code_star_connection_arn"),
    repository=source_repository(backend_context.get("repository")),
    env=env
)

website_context = env_context.get("website")
if website_context:
    # CloudFront certificates must live in us-east-1, whatever the backend region is
    website_stack = WebsiteStack(app, f"{app_name}-{env_name}-website",
        site_name=website_context["site_name"],
        website_type=StaticWebsiteType(website_context.get("type", "simple")),
        domain_name=website_context.get("domain_name"),
        zone_name=website_context.get("zone_name"),
        code_star_connection_arn=env_context.get("code_star_connection_arn"),
        repository=source_repository(website_context.get("repository")),
        env=cdk.Environment(account=env.account, region="us-east-1")
    )

app.synth()
