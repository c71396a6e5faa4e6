"""Synthesized template checks for the DockerCodeBuild stack."""

import json

from aws_cdk import App
import pytest
from aws_cdk.assertions import Match, Template

from docker_codebuild.config import Settings
from docker_codebuild.contract import build_spec
from docker_codebuild.secret import MAX_SECRET_LENGTH, create_origin_secret
from docker_codebuild.stack import DockerCodeBuild


class TestNetwork:

    def test_public_subnets_only(self, template):
        template.resource_count_is("AWS::EC2::Subnet", 2)
        template.resource_count_is("AWS::EC2::NatGateway", 0)
        template.has_resource_properties("AWS::EC2::Subnet", {
            "MapPublicIpOnLaunch": True,
            "CidrBlock": Match.string_like_regexp(r"/24$"),
        })

    def test_alb_security_group(self, template):
        template.has_resource_properties("AWS::EC2::SecurityGroup", {
            "GroupDescription": "Security Group for Fargate ALB",
        })


class TestOriginAdmission:

    def test_listener_rejects_by_default(self, template):
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::Listener", {
            "Port": 80,
            "Protocol": "HTTP",
            "DefaultActions": [
                Match.object_like({
                    "Type": "fixed-response",
                    "FixedResponseConfig": Match.object_like({"StatusCode": "403"}),
                })
            ],
        })

    def test_single_header_rule_forwards(self, template, scenario_header, scenario_secret):
        template.resource_count_is("AWS::ElasticLoadBalancingV2::ListenerRule", 1)
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::ListenerRule", {
            "Priority": 1,
            "Conditions": [{
                "Field": "http-header",
                "HttpHeaderConfig": {
                    "HttpHeaderName": scenario_header,
                    "Values": [scenario_secret],
                },
            }],
            "Actions": [Match.object_like({"Type": "forward"})],
        })

    def test_service_only_reachable_from_alb(self, template):
        template.has_resource_properties("AWS::EC2::SecurityGroupIngress", {
            "IpProtocol": "tcp",
            "FromPort": 80,
            "ToPort": 80,
            "SourceSecurityGroupId": Match.any_value(),
        })


class TestEdgeGate:

    def test_origin_carries_secret_header(self, template, scenario_header, scenario_secret):
        template.has_resource_properties("AWS::CloudFront::Distribution", {
            "DistributionConfig": Match.object_like({
                "Origins": [Match.object_like({
                    "OriginCustomHeaders": [
                        {"HeaderName": scenario_header, "HeaderValue": scenario_secret}
                    ],
                    "CustomOriginConfig": Match.object_like({
                        "OriginProtocolPolicy": "http-only",
                    }),
                })],
                "DefaultCacheBehavior": Match.object_like({
                    "ViewerProtocolPolicy": "redirect-to-https",
                }),
            }),
        })

    def test_domain_name_output(self, template):
        template.has_output("distributionDomainName", {})


class TestService:

    def test_task_definition(self, template):
        template.has_resource_properties("AWS::ECS::TaskDefinition", {
            "Cpu": "2048",
            "Memory": "4096",
            "RuntimePlatform": {
                "CpuArchitecture": "ARM64",
                "OperatingSystemFamily": "LINUX",
            },
            "ContainerDefinitions": [Match.object_like({
                "Name": "cdk-codebuild",
                "Image": "public.ecr.aws/nginx/nginx:latest-arm64v8",
                "PortMappings": [Match.object_like({"ContainerPort": 80})],
            })],
        })

    def test_container_and_target_group_agree_on_port(self, template):
        template.has_resource_properties("AWS::ECS::TaskDefinition", {
            "ContainerDefinitions": [Match.object_like({
                "PortMappings": [Match.object_like({"ContainerPort": 80, "HostPort": 80})],
                "HealthCheck": Match.object_like({
                    "Command": ["CMD-SHELL", "curl -f http://localhost:80/"],
                }),
            })],
        })
        template.has_resource_properties("AWS::ElasticLoadBalancingV2::TargetGroup", {
            "Port": 80,
            "HealthCheckPort": "80",
        })

    def test_fargate_service(self, template):
        template.has_resource_properties("AWS::ECS::Service", {
            "DesiredCount": 1,
            "LaunchType": "FARGATE",
        })


class TestPipeline:

    def test_repository(self, template):
        template.has_resource_properties("AWS::ECR::Repository", {
            "RepositoryName": "docker-codebuild",
            "ImageScanningConfiguration": {"ScanOnPush": True},
        })

    def test_stages_in_order(self, template):
        template.has_resource_properties("AWS::CodePipeline::Pipeline", {
            "Stages": [
                Match.object_like({"Name": "source"}),
                Match.object_like({"Name": "build"}),
                Match.object_like({"Name": "deploy"}),
            ],
        })

    def test_deploy_reads_image_definitions(self, template):
        template.has_resource_properties("AWS::CodePipeline::Pipeline", {
            "Stages": Match.array_with([Match.object_like({
                "Name": "deploy",
                "Actions": [Match.object_like({
                    "ActionTypeId": Match.object_like({"Provider": "ECS"}),
                    "Configuration": Match.object_like({
                        "FileName": "imagedefinitions.json",
                    }),
                })],
            })]),
        })

    def test_codebuild_uses_build_spec(self, template):
        projects = template.find_resources("AWS::CodeBuild::Project")
        assert len(projects) == 1
        properties = next(iter(projects.values()))["Properties"]
        assert json.loads(properties["Source"]["BuildSpec"]) == build_spec()
        assert properties["Environment"]["Type"] == "ARM_CONTAINER"
        names = {variable["Name"] for variable in properties["Environment"]["EnvironmentVariables"]}
        assert names == {
            "AWS_DEFAULT_REGION", "AWS_ACCOUNT_ID", "IMAGE_REPO_NAME", "IMAGE_REPO_URI", "IMAGE_TAG",
        }


def _rule_value(template):
    rules = template.find_resources("AWS::ElasticLoadBalancingV2::ListenerRule")
    rule = next(iter(rules.values()))
    return rule["Properties"]["Conditions"][0]["HttpHeaderConfig"]["Values"][0]


def _origin_header_value(template):
    distributions = template.find_resources("AWS::CloudFront::Distribution")
    distribution = next(iter(distributions.values()))
    origin = distribution["Properties"]["DistributionConfig"]["Origins"][0]
    return origin["OriginCustomHeaders"][0]["HeaderValue"]


def test_generated_secret_is_shared_by_edge_and_origin():
    app = App()
    stack = DockerCodeBuild(app, "generated-secret", settings=Settings(secret_length=16))
    template = Template.from_stack(stack)

    value = _rule_value(template)
    assert len(value) == 16
    assert value == _origin_header_value(template)
    assert value == stack.origin_secret.value


def test_separate_stacks_get_different_secrets():
    app = App()
    first = DockerCodeBuild(app, "first", settings=Settings(repository_name="first-repo"))
    second = DockerCodeBuild(app, "second", settings=Settings(repository_name="second-repo"))
    assert first.origin_secret.value != second.origin_secret.value


@pytest.mark.parametrize("value", ["*", "a?c", "ab-c"])
def test_wildcard_or_punctuated_secret_is_refused(value):
    app = App()
    with pytest.raises(ValueError):
        DockerCodeBuild(app, "refused-secret", settings=Settings(secret=value))


def test_longest_secret_fits_the_listener_rule():
    app = App()
    stack = DockerCodeBuild(
        app, "long-secret", settings=Settings(secret_length=MAX_SECRET_LENGTH)
    )
    template = Template.from_stack(stack)
    assert len(_rule_value(template)) == MAX_SECRET_LENGTH == 128


def test_secret_over_listener_limit_is_refused():
    app = App()
    with pytest.raises(ValueError):
        DockerCodeBuild(app, "too-long", settings=Settings(secret_length=129))
    with pytest.raises(ValueError):
        create_origin_secret(value="a" * 129)
