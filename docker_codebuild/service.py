from constructs import Construct
from aws_cdk import (
    aws_ecs as ecs,
    aws_iam as iam,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
)

from .admission import ListenerRules, origin_rules
from .contract import CONTAINER_NAME
from .logger import get_logger
from .secret import OriginSecret

logger = get_logger("docker-codebuild.service")

TARGET_GROUP = "targetGroup"
# nginx placeholder and the example image both listen here
CONTAINER_PORT = 80


class EcsResources(Construct):
    def __init__(
        self,
        scope: Construct,
        id: str,
        vpc: ec2.IVpc,
        fargate_alb_security_group: ec2.ISecurityGroup,
        origin_secret: OriginSecret,
    ) -> None:
        super().__init__(scope, id)

        # create a cluster for the service
        self.cluster = ecs.Cluster(self, "Cluster", vpc=vpc)

        # create a role for the task to use for logging
        self.task_role = iam.Role(
            self, "taskRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaBasicExecutionRole"
                )
            ]
        )

        # the execution role pulls from ecr and writes to cloudwatch
        execution_role_policy = iam.PolicyStatement(
            actions=[
                "ecr:GetAuthorizationToken",
                "ecr:BatchCheckLayerAvailability",
                "ecr:GetDownloadUrlForLayer",
                "ecr:BatchGetImage",
                "logs:CreateLogStream",
                "logs:PutLogEvents"
            ],
            resources=["*"]
        )

        self.application_load_balancer = elbv2.ApplicationLoadBalancer(
            self, "applicationLoadBalancer",
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            internet_facing=True,
            security_group=fargate_alb_security_group
        )

        # now we will define the fargate task, arm64 to match the codebuild image
        self.task_definition = ecs.FargateTaskDefinition(
            self, "taskDefinition",
            task_role=self.task_role,
            cpu=2048,
            memory_limit_mib=4096,
            runtime_platform=ecs.RuntimePlatform(
                cpu_architecture=ecs.CpuArchitecture.ARM64,
                operating_system_family=ecs.OperatingSystemFamily.LINUX
            )
        )

        # placeholder image until the pipeline deploys the first build; the
        # container name must match the one in imagedefinitions.json
        self.container = self.task_definition.add_container(
            CONTAINER_NAME,
            image=ecs.ContainerImage.from_registry(
                "public.ecr.aws/nginx/nginx:latest-arm64v8"
            ),
            port_mappings=[
                ecs.PortMapping(container_port=CONTAINER_PORT, host_port=CONTAINER_PORT)
            ],
            logging=ecs.LogDrivers.aws_logs(stream_prefix=CONTAINER_NAME),
            health_check=ecs.HealthCheck(
                command=["CMD-SHELL", f"curl -f http://localhost:{CONTAINER_PORT}/"]
            )
        )

        self.task_definition.add_to_execution_role_policy(execution_role_policy)

        # create the service security group
        self.fargate_security_group = ec2.SecurityGroup(
            self, "fargateSecurityGroup",
            vpc=vpc
        )

        # now lets define the fargate service which will run our task definition
        self.fargate_service = ecs.FargateService(
            self, "fargateService",
            cluster=self.cluster,
            task_definition=self.task_definition,
            desired_count=1,
            assign_public_ip=True,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            security_groups=[self.fargate_security_group]
        )

        self.target_group = elbv2.ApplicationTargetGroup(
            self, TARGET_GROUP,
            vpc=vpc,
            port=CONTAINER_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            targets=[self.fargate_service],
            health_check=elbv2.HealthCheck(
                path="/",
                port=str(CONTAINER_PORT)
            )
        )

        # everything that does not carry the secret header gets a 403
        self.listener_rules = origin_rules(origin_secret, TARGET_GROUP)
        self.listener = self.application_load_balancer.add_listener(
            "applicationLoadBalancerListener",
            port=80,
            protocol=elbv2.ApplicationProtocol.HTTP,
            open=True,
            default_action=elbv2.ListenerAction.fixed_response(
                self.listener_rules.default_action.status_code
            )
        )
        self._add_listener_rules(self.listener_rules)

        # only the load balancer may reach the tasks
        self.fargate_security_group.connections.allow_from(
            fargate_alb_security_group,
            ec2.Port.tcp(CONTAINER_PORT),
            "Allow traffic from the load balancer"
        )

    def _add_listener_rules(self, listener_rules: ListenerRules) -> None:
        target_groups = {TARGET_GROUP: self.target_group}
        for rule in listener_rules.rules:
            logger.info(
                "adding listener rule priority=%d header=%s target=%s",
                rule.priority, rule.header_name, rule.forward_target
            )
            self.listener.add_action(
                "ForwardFromCloudFront" if rule.priority == 1 else f"Forward{rule.priority}",
                action=elbv2.ListenerAction.forward(
                    [target_groups[rule.forward_target]]
                ),
                conditions=[
                    elbv2.ListenerCondition.http_header(
                        rule.header_name, [rule.expected_value]
                    )
                ],
                priority=rule.priority
            )
