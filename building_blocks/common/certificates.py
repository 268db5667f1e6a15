"""Certificate source resolution shared by the backend and website constructs.

A custom domain is served either through a freshly issued, DNS-validated
certificate (domain name + hosted zone) or through a certificate that already
exists (certificate ARN). Exactly one of the two must be chosen; anything else is
rejected before a single resource is declared.
"""
from dataclasses import dataclass
from typing import Optional, Union

from aws_cdk import aws_route53 as route53


class ConfigurationError(ValueError):
    """Raised when construct inputs cannot be resolved into a consistent stack."""


@dataclass(frozen=True)
class NewCertificate:
    domain_name: str
    hosted_zone: route53.IHostedZone


@dataclass(frozen=True)
class ExistingCertificate:
    certificate_arn: str


CertificateSource = Union[NewCertificate, ExistingCertificate]

# Stands in for the name of a zone imported by id only
IMPORTED_ZONE = "<imported>"


def resolve_certificate_source(
        domain_name: Optional[str],
        hosted_zone: Optional[route53.IHostedZone],
        certificate_arn: Optional[str],
        *,
        required: bool = True) -> Optional[CertificateSource]:
    """Pick the certificate path for a set of domain inputs.

    Args:
        domain_name: Domain (or label relative to the zone) to issue a certificate for.
        hosted_zone: Zone holding the validation and alias records.
        certificate_arn: ARN of a certificate issued outside this app.
        required: Whether the absence of every input is an error.

    Returns:
        A NewCertificate (carrying the fully qualified domain name) or an
        ExistingCertificate, or None when nothing was supplied and ``required``
        is False.

    Raises:
        ConfigurationError: If the inputs are incomplete, name both paths, or pair
            a bare label with a zone whose name is unknown.
    """
    has_domain = bool(domain_name)
    has_zone = hosted_zone is not None
    has_arn = bool(certificate_arn)

    if has_domain and has_zone and not has_arn:
        return NewCertificate(
            domain_name=fully_qualified_domain_name(domain_name, hosted_zone),
            hosted_zone=hosted_zone,
        )
    if has_arn and not has_domain and not has_zone:
        return ExistingCertificate(certificate_arn=certificate_arn)
    if not (has_domain or has_zone or has_arn) and not required:
        return None

    zone_name = None
    if has_zone:
        readable = readable_zone_name(hosted_zone)
        zone_name = repr(readable) if readable is not None else IMPORTED_ZONE
    raise ConfigurationError(
        "Either domain_name and hosted_zone, or certificate_arn must be provided "
        f"(domain_name={domain_name!r}, hosted_zone={zone_name}, "
        f"certificate_arn={certificate_arn!r})"
    )


def readable_zone_name(hosted_zone: route53.IHostedZone) -> Optional[str]:
    """Name of the zone, or None for zones imported by id alone.

    ``HostedZone.from_hosted_zone_id`` zones refuse to report their name and
    raise from inside the jsii runtime when asked.
    """
    try:
        return hosted_zone.zone_name
    except RuntimeError:
        return None


def fully_qualified_domain_name(domain_name: str, hosted_zone: route53.IHostedZone) -> str:
    """Qualify ``domain_name`` against the zone it will be published in.

    When the zone name is unknown the domain must already be fully qualified.

    Raises:
        ConfigurationError: If a bare label is paired with a zone imported by id.
    """
    zone_name = readable_zone_name(hosted_zone)
    if zone_name is not None:
        return qualify_domain_name(domain_name, zone_name)
    domain_name = domain_name.rstrip(".")
    if "." not in domain_name:
        raise ConfigurationError(
            f"Cannot qualify domain_name={domain_name!r} because the hosted zone was imported "
            "without its name; pass a fully qualified domain name, or import the zone with "
            "HostedZone.from_hosted_zone_attributes or HostedZone.from_lookup"
        )
    return domain_name


def qualify_domain_name(domain_name: str, zone_name: str) -> str:
    """Expand a label relative to ``zone_name`` into a fully qualified name."""
    domain_name = domain_name.rstrip(".")
    zone_name = zone_name.rstrip(".")
    if domain_name == zone_name or domain_name.endswith("." + zone_name):
        return domain_name
    return f"{domain_name}.{zone_name}"
