"""Backend deployment intent and its resolution into effective settings.

``resolve_intent`` is the single, explicit merge step between what the caller
asked for (``DeploymentIntent``) and the defaults it runs with
(``BackendDefaults``). It is pure: no constructs are touched, so it can be called
and inspected on its own, and the ``DockerBackend`` construct runs it before
declaring anything.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from aws_cdk import aws_ecs as ecs, aws_route53 as route53

from building_blocks.common.certificates import (
    CertificateSource,
    ConfigurationError,
    resolve_certificate_source,
)

HEALTH_CHECK_PORT = 80

ContainerImageRef = Union[str, ecs.ContainerImage]


@dataclass(frozen=True)
class Sizing:
    cpu: Optional[int] = None
    memory_limit_mib: Optional[int] = None


@dataclass(frozen=True)
class AccessGrants:
    """Downstream services the task role may call.

    Each enabled toggle grants every action of that service on every resource.
    Narrow the task role yourself when that is too broad.
    """

    dynamodb: bool = False
    s3: bool = False
    sqs: bool = False
    sns: bool = False
    secrets_manager: bool = False

    _ACTION_PREFIXES = (
        ("dynamodb", "dynamodb"),
        ("s3", "s3"),
        ("sqs", "sqs"),
        ("sns", "sns"),
        ("secrets_manager", "secretsmanager"),
    )

    def enabled_action_prefixes(self) -> Tuple[str, ...]:
        return tuple(prefix for toggle, prefix in self._ACTION_PREFIXES if getattr(self, toggle))


@dataclass(frozen=True)
class CapacityBounds:
    min_capacity: int
    max_capacity: int

    def __post_init__(self):
        if self.min_capacity < 1:
            raise ConfigurationError(f"min_capacity must be at least 1, got {self.min_capacity}")
        if self.min_capacity > self.max_capacity:
            raise ConfigurationError(
                f"min_capacity ({self.min_capacity}) must not exceed max_capacity ({self.max_capacity})"
            )


@dataclass(frozen=True)
class DeploymentIntent:
    app_name: str
    domain_name: Optional[str] = None
    hosted_zone: Optional[route53.IHostedZone] = None
    certificate_arn: Optional[str] = None
    sizing: Sizing = field(default_factory=Sizing)
    container_image: Optional[ContainerImageRef] = None
    container_port: Optional[int] = None
    health_check_path: Optional[str] = None
    access_grants: AccessGrants = field(default_factory=AccessGrants)
    capacity: Optional[CapacityBounds] = None


@dataclass(frozen=True)
class BackendDefaults:
    cpu: int = 512
    memory_limit_mib: int = 1024
    container_image: ContainerImageRef = "amazon/amazon-ecs-sample"
    container_port: int = 80
    health_check_path: str = "/"
    capacity: CapacityBounds = field(default_factory=lambda: CapacityBounds(min_capacity=2, max_capacity=8))
    cpu_target_utilization_percent: int = 75
    scale_cooldown_seconds: int = 60


DEFAULT_BACKEND_DEFAULTS = BackendDefaults()


@dataclass(frozen=True)
class BackendSettings:
    """Effective configuration of one backend, after defaults were applied."""

    app_name: str
    certificate: CertificateSource
    cpu: int
    memory_limit_mib: int
    container_image: ContainerImageRef
    container_port: int
    health_check_path: str
    access_grants: AccessGrants
    capacity: CapacityBounds
    cpu_target_utilization_percent: int
    scale_cooldown_seconds: int

    @property
    def task_family(self) -> str:
        return task_family(self.app_name)

    @property
    def ingress_ports(self) -> Tuple[int, ...]:
        return service_ingress_ports(self.container_port)


def task_family(app_name: str) -> str:
    """Task definition family for an app; independent of the image it runs."""
    return app_name


def service_ingress_ports(container_port: int) -> Tuple[int, ...]:
    """Ports the service accepts from the load balancer.

    Health checks always arrive as plain HTTP on port 80, so that port is opened
    alongside the application port.
    """
    if container_port == HEALTH_CHECK_PORT:
        return (container_port,)
    return (container_port, HEALTH_CHECK_PORT)


def _validate_port(port: int) -> int:
    # bool is an int subclass but never a port
    if not isinstance(port, int) or isinstance(port, bool):
        raise ConfigurationError(f"container_port must be an integer, got {port!r}")
    if not 1 <= port <= 65535:
        raise ConfigurationError(f"container_port must be between 1 and 65535, got {port}")
    return port


def resolve_intent(intent: DeploymentIntent,
        defaults: BackendDefaults = DEFAULT_BACKEND_DEFAULTS) -> BackendSettings:
    """Merge a deployment intent with defaults and validate the result.

    Args:
        intent: What the caller wants deployed.
        defaults: Values used for everything the intent leaves unset.

    Returns:
        The effective, immutable backend settings.

    Raises:
        ConfigurationError: If the app name, port, capacity or certificate inputs
            are invalid.
    """
    if not intent.app_name:
        raise ConfigurationError("app_name must be a non-empty string")

    certificate = resolve_certificate_source(
        intent.domain_name,
        intent.hosted_zone,
        intent.certificate_arn,
    )

    sizing = intent.sizing
    container_port = intent.container_port if intent.container_port is not None else defaults.container_port

    return BackendSettings(
        app_name=intent.app_name,
        certificate=certificate,
        cpu=sizing.cpu if sizing.cpu is not None else defaults.cpu,
        memory_limit_mib=sizing.memory_limit_mib if sizing.memory_limit_mib is not None else defaults.memory_limit_mib,
        container_image=intent.container_image if intent.container_image is not None else defaults.container_image,
        container_port=_validate_port(container_port),
        health_check_path=intent.health_check_path or defaults.health_check_path,
        access_grants=intent.access_grants,
        capacity=intent.capacity or defaults.capacity,
        cpu_target_utilization_percent=defaults.cpu_target_utilization_percent,
        scale_cooldown_seconds=defaults.scale_cooldown_seconds,
    )
