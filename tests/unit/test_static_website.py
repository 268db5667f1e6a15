"""Unit tests for the StaticWebsite construct.

Tests the encrypted content and log buckets, the CloudFront distribution for
SIMPLE and SPA sites, the optional custom domain (certificate + alias record)
and the us-east-1 region guard.
"""
import aws_cdk as cdk
import pytest
from aws_cdk import aws_route53 as route53
from aws_cdk.assertions import Match, Template

from building_blocks.common.certificates import ConfigurationError
from building_blocks.website.static_website import StaticWebsite, StaticWebsiteType

ENCRYPTED_PRIVATE_BUCKET = {
    "PublicAccessBlockConfiguration": {
        "BlockPublicAcls": True,
        "BlockPublicPolicy": True,
        "IgnorePublicAcls": True,
        "RestrictPublicBuckets": True,
    },
    "BucketEncryption": {
        "ServerSideEncryptionConfiguration": [
            Match.object_like({
                "ServerSideEncryptionByDefault": {"SSEAlgorithm": "AES256"},
            })
        ],
    },
}


def make_stack(region: str = "us-east-1"):
    app = cdk.App()
    return cdk.Stack(app, "StaticWebsiteTest", env=cdk.Environment(account="111111111111", region=region))


def synth_website(website_type: StaticWebsiteType = StaticWebsiteType.SIMPLE, with_domain: bool = False):
    """Synthesize a StaticWebsite named example.com for testing.

    Args:
        website_type: SIMPLE or SPA.
        with_domain: Attach the example.com domain through a hosted zone.

    Returns:
        Tuple of (website, template) for assertions.
    """
    stack = make_stack()
    domain_args = {}
    if with_domain:
        domain_args = {
            "hosted_zone": route53.PublicHostedZone(stack, "HostedZone", zone_name="example.com"),
            "domain_name": "example.com",
        }
    website = StaticWebsite(stack, "Website", name="example.com", website_type=website_type, **domain_args)
    return website, Template.from_stack(stack)


def test_content_and_log_buckets_are_private_and_encrypted():
    """Test both buckets block public access and use S3-managed encryption."""
    _, template = synth_website()
    template.has_resource_properties("AWS::S3::Bucket", {
        "BucketName": "site-example.com-content",
        **ENCRYPTED_PRIVATE_BUCKET,
    })
    template.has_resource_properties("AWS::S3::Bucket", {
        "BucketName": "site-example.com-logs",
        **ENCRYPTED_PRIVATE_BUCKET,
    })


def test_buckets_reject_unencrypted_uploads():
    """Test both bucket policies deny uploads with a missing or wrong encryption header."""
    _, template = synth_website()
    policies = template.find_resources("AWS::S3::BucketPolicy")
    for sid in ("DenyIncorrectEncryptionHeader", "DenyUnencryptedObjectUploads"):
        matching = [
            policy for policy in policies.values()
            if any(statement.get("Sid") == sid and statement["Effect"] == "Deny"
                   for statement in policy["Properties"]["PolicyDocument"]["Statement"])
        ]
        assert len(matching) == 2, f"Expected {sid} on both buckets, found {len(matching)}"


def test_distribution_defaults():
    """Test the distribution compresses, redirects to HTTPS and serves index.html over HTTP/2."""
    _, template = synth_website()
    template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": Match.object_like({
            "DefaultCacheBehavior": Match.object_like({
                "Compress": True,
                "ViewerProtocolPolicy": "redirect-to-https",
            }),
            "DefaultRootObject": "index.html",
            "HttpVersion": "http2",
            "Logging": Match.object_like({"Bucket": Match.any_value()}),
        }),
    })


def test_no_custom_domain_without_zone():
    """Test no certificate, alias or DNS record is created without a domain."""
    website, template = synth_website()
    template.resource_count_is("AWS::CertificateManager::Certificate", 0)
    template.resource_count_is("AWS::Route53::RecordSet", 0)
    template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": Match.object_like({"Aliases": Match.absent()}),
    })
    assert website.certificate is None


def test_certificate_and_alias_record_for_custom_domain():
    """Test a domain with a hosted zone gets a DNS-validated certificate and an A alias record."""
    _, template = synth_website(with_domain=True)
    template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": Match.object_like({"Aliases": ["example.com"]}),
    })
    template.has_resource_properties("AWS::CertificateManager::Certificate", {
        "DomainName": "example.com",
        "ValidationMethod": "DNS",
    })
    template.has_resource_properties("AWS::Route53::RecordSet", {
        "Name": "example.com.",
        "Type": "A",
    })


def test_simple_site_has_no_error_responses():
    """Test SIMPLE sites keep CloudFront's default error handling."""
    _, template = synth_website(StaticWebsiteType.SIMPLE)
    template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": Match.object_like({"CustomErrorResponses": Match.absent()}),
    })


def test_spa_serves_index_for_missing_paths():
    """Test SPA sites answer 403 and 404 with index.html and status 200."""
    _, template = synth_website(StaticWebsiteType.SPA)
    template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": Match.object_like({
            "CustomErrorResponses": [
                {"ErrorCode": 403, "ResponsePagePath": "/index.html", "ErrorCachingMinTTL": 300, "ResponseCode": 200},
                {"ErrorCode": 404, "ResponsePagePath": "/index.html", "ErrorCachingMinTTL": 300, "ResponseCode": 200},
            ],
        }),
    })


def test_region_other_than_us_east_1_rejected():
    """Test the website refuses to be created outside us-east-1."""
    stack = make_stack(region="eu-west-1")
    with pytest.raises(ConfigurationError) as exc_info:
        StaticWebsite(stack, "Website", name="example.com")
    assert "us-east-1" in str(exc_info.value)
    assert stack.node.try_find_child("Website") is None


def test_environment_agnostic_stack_accepted():
    """Test an unresolved region does not trip the region guard."""
    stack = cdk.Stack(cdk.App(), "AgnosticStack")
    StaticWebsite(stack, "Website", name="example.com")
    Template.from_stack(stack).resource_count_is("AWS::CloudFront::Distribution", 1)


def test_domain_without_zone_rejected():
    """Test a domain name without a hosted zone is a configuration error."""
    stack = make_stack()
    with pytest.raises(ConfigurationError):
        StaticWebsite(stack, "Website", name="example.com", domain_name="example.com")


def test_outputs_present():
    """Test bucket and distribution outputs are emitted."""
    _, template = synth_website()
    outputs = template.to_json().get("Outputs", {})
    for prefix in ("WebsiteContentBucketName", "WebsiteDistributionId", "WebsiteDistributionDomainName"):
        assert any(key.startswith(prefix) for key in outputs), f"Missing {prefix} in {list(outputs)}"
