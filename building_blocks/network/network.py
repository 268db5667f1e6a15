"""Network construct module.

Declares the isolated VPC a backend runs in:
- Public subnets for the internet-facing load balancer
- Private subnets with egress for the Fargate tasks
- A single NAT gateway shared by the private subnets
"""
import ipaddress
from constructs import Construct
from aws_cdk import (
    aws_ec2 as ec2,
    Tags
)


class BackendNetwork(Construct):
    """Multi-AZ VPC with one public and one private subnet per AZ.

    Subnets are tagged with readable names derived from the owning app.
    """

    def __init__(self, scope: Construct,
            construct_id: str,
            name: str,
            vpc_cidr: str = "10.0.0.0/16",
            max_azs: int = 3) -> None:
        super().__init__(scope, construct_id)

        self.vpc_name = f"{name}-vpc"
        self.vpc_cidr = vpc_cidr

        try:
            ipaddress.ip_network(self.vpc_cidr)
        except ValueError as e:
            raise ValueError(f"Invalid VPC CIDR block: {self.vpc_cidr}") from e

        self.vpc = ec2.Vpc(self, "Vpc",
            ip_addresses=ec2.IpAddresses.cidr(self.vpc_cidr),
            max_azs=max_azs,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            vpc_name=self.vpc_name,
            nat_gateways=1,
            nat_gateway_subnets=ec2.SubnetSelection(
                subnet_type=ec2.SubnetType.PUBLIC
            ),
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name="private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=20
                )
            ],
        )

        self.resource_tags(name)

    def resource_tags(self, name: str) -> None:
        """Tag subnets with meaningful names"""
        for subnet_group, subnets in (("public", self.vpc.public_subnets),
                                      ("private", self.vpc.private_subnets)):
            for az_index, subnet in enumerate(subnets):
                az_letter = chr(ord('a') + az_index)
                Tags.of(subnet).add("Name", f"{name}-{subnet_group}-{az_letter}")
