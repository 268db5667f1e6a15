"""Static website construct module.

Hosts static content from S3 behind CloudFront:
- Private, S3-encrypted content and access-log buckets that reject unencrypted uploads
- CloudFront distribution redirecting to HTTPS, with SPA-friendly error responses on demand
- Optional custom domain: DNS-validated certificate plus a Route 53 alias record
"""
from enum import Enum
from typing import List, Optional

from constructs import Construct
from aws_cdk import (
    CfnOutput,
    Duration,
    Stack,
    Token,
    aws_certificatemanager as acm,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_iam as iam,
    aws_route53 as route53,
    aws_route53_targets as route53_targets,
    aws_s3 as s3,
)

from building_blocks.common.certificates import (
    ConfigurationError,
    resolve_certificate_source,
)

# CloudFront only accepts certificates issued in us-east-1
REQUIRED_REGION = "us-east-1"


class StaticWebsiteType(Enum):
    """The type of web application which will be hosted."""

    SIMPLE = "simple"
    """Static content: HTML pages, CSS and JS files, images."""

    SPA = "spa"
    """Single page applications that route on the client, e.g. Angular, React or Vue."""


class StaticWebsite(Construct):
    """S3 + CloudFront hosting for a static website.

    Without ``hosted_zone`` and ``domain_name`` the site is served from the
    distribution's generated domain name.
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 name: str,
                 website_type: StaticWebsiteType = StaticWebsiteType.SIMPLE,
                 hosted_zone: Optional[route53.IHostedZone] = None,
                 domain_name: Optional[str] = None) -> None:
        region = Stack.of(scope).region
        if not Token.is_unresolved(region) and region != REQUIRED_REGION:
            raise ConfigurationError(
                f'The static website must be created in the region "{REQUIRED_REGION}", got "{region}"'
            )
        certificate_source = resolve_certificate_source(domain_name, hosted_zone, None, required=False)

        super().__init__(scope, construct_id)

        self.website_type = website_type
        self.content_bucket = self.create_encrypted_bucket("ContentBucket", f"site-{name}-content")
        self.logging_bucket = self.create_encrypted_bucket("LoggingBucket", f"site-{name}-logs",
            object_ownership=s3.ObjectOwnership.BUCKET_OWNER_PREFERRED,
        )

        self.certificate = None
        self.alias_record = None
        if certificate_source is None:
            self.distribution = self.create_distribution()
        else:
            self.certificate = acm.Certificate(self, "Certificate",
                domain_name=certificate_source.domain_name,
                validation=acm.CertificateValidation.from_dns(certificate_source.hosted_zone),
            )
            self.distribution = self.create_distribution(
                domain_names=[certificate_source.domain_name],
                certificate=self.certificate,
            )
            self.alias_record = route53.ARecord(self, "AliasRecord",
                zone=certificate_source.hosted_zone,
                record_name=f"{certificate_source.domain_name}.",
                target=route53.RecordTarget.from_alias(
                    route53_targets.CloudFrontTarget(self.distribution)
                ),
            )

        CfnOutput(self, "ContentBucketName", value=self.content_bucket.bucket_name)
        CfnOutput(self, "DistributionId", value=self.distribution.distribution_id)
        CfnOutput(self, "DistributionDomainName", value=self.distribution.distribution_domain_name)

    def create_encrypted_bucket(self, construct_id: str, bucket_name: str,
                                object_ownership: Optional[s3.ObjectOwnership] = None) -> s3.Bucket:
        """Create a private, S3-encrypted bucket that rejects unencrypted uploads."""
        bucket = s3.Bucket(self, construct_id,
            bucket_name=bucket_name,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
            object_ownership=object_ownership,
        )

        bucket.add_to_resource_policy(iam.PolicyStatement(
            sid="DenyIncorrectEncryptionHeader",
            effect=iam.Effect.DENY,
            actions=["s3:PutObject"],
            principals=[iam.AccountRootPrincipal()],
            resources=[bucket.arn_for_objects("*")],
            conditions={
                "StringNotEquals": {"s3:x-amz-server-side-encryption": "AES256"}
            },
        ))
        bucket.add_to_resource_policy(iam.PolicyStatement(
            sid="DenyUnencryptedObjectUploads",
            effect=iam.Effect.DENY,
            actions=["s3:PutObject"],
            principals=[iam.AccountRootPrincipal()],
            resources=[bucket.arn_for_objects("*")],
            conditions={
                "Null": {"s3:x-amz-server-side-encryption": True}
            },
        ))
        return bucket

    def error_responses(self) -> Optional[List[cloudfront.ErrorResponse]]:
        """SPAs answer unknown paths with index.html so client-side routing can take over."""
        if self.website_type is not StaticWebsiteType.SPA:
            return None
        return [
            cloudfront.ErrorResponse(
                http_status=status,
                response_http_status=200,
                response_page_path="/index.html",
                ttl=Duration.minutes(5),
            )
            for status in (403, 404)
        ]

    def create_distribution(self, domain_names: Optional[List[str]] = None,
                            certificate: Optional[acm.ICertificate] = None) -> cloudfront.Distribution:
        return cloudfront.Distribution(self, "Distribution",
            default_behavior=cloudfront.BehaviorOptions(
                origin=origins.S3BucketOrigin.with_origin_access_control(self.content_bucket),
                compress=True,
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
            ),
            domain_names=domain_names,
            certificate=certificate,
            default_root_object="index.html",
            http_version=cloudfront.HttpVersion.HTTP2,
            enable_logging=True,
            log_bucket=self.logging_bucket,
            error_responses=self.error_responses(),
        )
