from aws_cdk import (
    aws_ec2 as ec2,
    Stack
)
from constructs import Construct

class VpcStack(Stack):
    def __init__(self, scope: Construct, id: str, settings, **kwargs):
        super().__init__(scope, id, **kwargs)

        # ALB lives in the public tier; app and agent tasks pull images through NAT
        subnet_tiers = [
            ("public", ec2.SubnetType.PUBLIC),
            ("private", ec2.SubnetType.PRIVATE_WITH_EGRESS),
        ]
        self.vpc = ec2.Vpc(
            self, "SSSVpc",
            max_azs=settings.max_azs,
            nat_gateways=settings.nat_gateways,
            subnet_configuration=[
                ec2.SubnetConfiguration(name=name, subnet_type=subnet_type, cidr_mask=settings.subnet_cidr_mask)
                for name, subnet_type in subnet_tiers
            ]
        )
