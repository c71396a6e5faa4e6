from aws_cdk import (
    aws_ec2 as ec2,
)
from constructs import Construct

class VpcResources(Construct):
    def __init__(self, scope: Construct, id: str, max_azs: int = 2) -> None:
        super().__init__(scope, id)

        # create a vpc with public subnets only, no nat gateways
        self.vpc = ec2.Vpc(
            self, "VPC",
            max_azs=max_azs,
            nat_gateways=0,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="PublicSubnet",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24
                )
            ]
        )

        # the load balancer gets its own security group so the service can
        # admit traffic from it alone
        self.fargate_alb_security_group = ec2.SecurityGroup(
            self, "fargateAlbSecurityGroup",
            vpc=self.vpc,
            description="Security Group for Fargate ALB"
        )
