"""Docker backend construct module.

Declares a containerized backend behind an internet-facing load balancer:
- VPC and ECS cluster dedicated to the app
- Application Load Balancer with an HTTP -> HTTPS redirect listener
- HTTPS listener using either a new DNS-validated certificate (plus an alias
  record in the hosted zone) or an existing certificate ARN
- Fargate task definition with a stable family name, so later deployments only
  swap the image
- Fargate service reachable from the load balancer only, with CPU based
  auto scaling between a minimum and maximum task count
"""
from dataclasses import dataclass
from typing import Optional

from constructs import Construct
from aws_cdk import (
    CfnOutput,
    Duration,
    Tags,
    aws_certificatemanager as acm,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
    aws_route53 as route53,
    aws_route53_targets as route53_targets,
)

from building_blocks.backend.resolution import (
    DEFAULT_BACKEND_DEFAULTS,
    BackendDefaults,
    BackendSettings,
    DeploymentIntent,
    resolve_intent,
)
from building_blocks.common.certificates import NewCertificate
from building_blocks.network.network import BackendNetwork

HTTPS_PORT = 443
HTTP_PORT = 80


@dataclass(frozen=True)
class BackendResources:
    """Handles to everything a DockerBackend declared."""

    network: BackendNetwork
    cluster: ecs.Cluster
    load_balancer: elbv2.ApplicationLoadBalancer
    load_balancer_security_group: ec2.SecurityGroup
    redirect_listener: elbv2.ApplicationListener
    secure_listener: elbv2.ApplicationListener
    certificate: acm.ICertificate
    alias_record: Optional[route53.ARecord]
    task_definition: ecs.FargateTaskDefinition
    container: ecs.ContainerDefinition
    service_security_group: ec2.SecurityGroup
    service: ecs.FargateService
    target_group: elbv2.ApplicationTargetGroup
    scalable_target: ecs.ScalableTaskCount


class DockerBackend(Construct):
    """Load-balanced Fargate service for a single containerized app.

    The deployment intent is resolved before anything is declared; an invalid
    intent raises ConfigurationError and leaves the scope untouched.
    """

    def __init__(self, scope: Construct, construct_id: str, *,
                 intent: DeploymentIntent,
                 defaults: BackendDefaults = DEFAULT_BACKEND_DEFAULTS) -> None:
        settings = resolve_intent(intent, defaults)
        super().__init__(scope, construct_id)

        self.settings = settings
        app_name = settings.app_name

        self.network = BackendNetwork(self, "Network", name=app_name)
        self.vpc = self.network.vpc

        self.cluster = ecs.Cluster(self, "Cluster",
            cluster_name=app_name,
            vpc=self.vpc,
        )

        self.load_balancer_security_group = ec2.SecurityGroup(self, "LoadBalancerSecurityGroup",
            vpc=self.vpc,
            description=f"Load balancer for {app_name}",
            allow_all_outbound=True,
        )
        self.load_balancer = elbv2.ApplicationLoadBalancer(self, "LoadBalancer",
            load_balancer_name=app_name,
            vpc=self.vpc,
            internet_facing=True,
            security_group=self.load_balancer_security_group,
        )

        self.redirect_listener = self.load_balancer.add_redirect(
            source_protocol=elbv2.ApplicationProtocol.HTTP,
            source_port=HTTP_PORT,
            target_protocol=elbv2.ApplicationProtocol.HTTPS,
            target_port=HTTPS_PORT,
        )
        self.certificate, self.alias_record = self.resolve_certificate(settings)
        self.secure_listener = self.load_balancer.add_listener("HttpsListener",
            port=HTTPS_PORT,
            protocol=elbv2.ApplicationProtocol.HTTPS,
            certificates=[elbv2.ListenerCertificate.from_certificate_manager(self.certificate)],
            open=True,
        )

        self.task_definition, self.container = self.create_task_definition(settings)
        self.service_security_group = self.create_service_security_group(settings)

        self.service = ecs.FargateService(self, "Service",
            service_name=app_name,
            cluster=self.cluster,
            task_definition=self.task_definition,
            desired_count=settings.capacity.min_capacity,
            security_groups=[self.service_security_group],
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            assign_public_ip=False,
        )

        # Health checks stay plain HTTP even though clients reach the target over HTTPS
        self.target_group = self.secure_listener.add_targets("ServiceTarget",
            port=settings.container_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            targets=[self.service],
            health_check=elbv2.HealthCheck(
                path=settings.health_check_path,
                protocol=elbv2.Protocol.HTTP,
            ),
        )

        self.scalable_target = self.add_auto_scaling(settings)
        self.resource_tags(app_name)

        self.resources = BackendResources(
            network=self.network,
            cluster=self.cluster,
            load_balancer=self.load_balancer,
            load_balancer_security_group=self.load_balancer_security_group,
            redirect_listener=self.redirect_listener,
            secure_listener=self.secure_listener,
            certificate=self.certificate,
            alias_record=self.alias_record,
            task_definition=self.task_definition,
            container=self.container,
            service_security_group=self.service_security_group,
            service=self.service,
            target_group=self.target_group,
            scalable_target=self.scalable_target,
        )

        CfnOutput(self, "LoadBalancerDns", value=self.load_balancer.load_balancer_dns_name)
        CfnOutput(self, "ServiceUrl", value=f"https://{self.service_domain_name}")

    @property
    def service_domain_name(self) -> str:
        """Name clients should use to reach the service."""
        certificate = self.settings.certificate
        if isinstance(certificate, NewCertificate):
            return certificate.domain_name
        return self.load_balancer.load_balancer_dns_name

    def resolve_certificate(self, settings: BackendSettings):
        """Issue a new certificate or reference an existing one.

        A new certificate is validated through DNS in the given hosted zone, and an
        alias record for the domain is pointed at the load balancer. An existing
        certificate leaves DNS to the caller.

        Returns:
            Tuple of (certificate, alias record or None).
        """
        source = settings.certificate
        if isinstance(source, NewCertificate):
            domain_name = source.domain_name
            certificate = acm.Certificate(self, "Certificate",
                domain_name=domain_name,
                validation=acm.CertificateValidation.from_dns(source.hosted_zone),
            )
            alias_record = route53.ARecord(self, "AliasRecord",
                zone=source.hosted_zone,
                # Trailing dot: the record name is used as-is, never joined to the zone name
                record_name=f"{domain_name}.",
                target=route53.RecordTarget.from_alias(
                    route53_targets.LoadBalancerTarget(self.load_balancer)
                ),
            )
            return certificate, alias_record

        certificate = acm.Certificate.from_certificate_arn(self, "Certificate", source.certificate_arn)
        return certificate, None

    def create_task_definition(self, settings: BackendSettings):
        """Create the task definition, its roles and the app container.

        The execution role may pull images and write logs. The task role receives
        one unrestricted statement per enabled access grant.
        """
        execution_role = iam.Role(self, "TaskExecutionRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AmazonECSTaskExecutionRolePolicy")
            ]
        )

        task_role = iam.Role(self, "TaskRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
        )
        for prefix in settings.access_grants.enabled_action_prefixes():
            task_role.add_to_policy(iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[f"{prefix}:*"],
                resources=["*"],
            ))

        task_definition = ecs.FargateTaskDefinition(self, "TaskDefinition",
            family=settings.task_family,
            cpu=settings.cpu,
            memory_limit_mib=settings.memory_limit_mib,
            execution_role=execution_role,
            task_role=task_role,
        )

        image = settings.container_image
        if isinstance(image, str):
            image = ecs.ContainerImage.from_registry(image)

        container = task_definition.add_container(settings.app_name,
            container_name=settings.app_name,
            image=image,
            port_mappings=[
                ecs.PortMapping(
                    container_port=settings.container_port,
                    protocol=ecs.Protocol.TCP,
                )
            ],
            logging=ecs.LogDrivers.aws_logs(stream_prefix=settings.app_name),
        )
        return task_definition, container

    def create_service_security_group(self, settings: BackendSettings) -> ec2.SecurityGroup:
        """Allow traffic from the load balancer only; all outbound traffic is allowed."""
        security_group = ec2.SecurityGroup(self, "ServiceSecurityGroup",
            vpc=self.vpc,
            description=f"Fargate service for {settings.app_name}",
            allow_all_outbound=True,
        )
        for port in settings.ingress_ports:
            security_group.add_ingress_rule(
                peer=self.load_balancer_security_group,
                connection=ec2.Port.tcp(port),
                description=f"Load balancer to service on port {port}",
            )
        return security_group

    def add_auto_scaling(self, settings: BackendSettings) -> ecs.ScalableTaskCount:
        """Bound the task count and track average CPU utilization"""
        capacity = settings.capacity
        scaling = self.service.auto_scale_task_count(
            min_capacity=capacity.min_capacity,
            max_capacity=capacity.max_capacity,
        )
        cooldown = Duration.seconds(settings.scale_cooldown_seconds)
        scaling.scale_on_cpu_utilization("CpuScaling",
            target_utilization_percent=settings.cpu_target_utilization_percent,
            scale_in_cooldown=cooldown,
            scale_out_cooldown=cooldown,
        )
        return scaling

    def resource_tags(self, app_name: str) -> None:
        """Apply resource tags"""
        Tags.of(self).add("Application", app_name)
        Tags.of(self).add("ManagedBy", "CDK")
