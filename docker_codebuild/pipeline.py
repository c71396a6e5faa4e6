from pathlib import Path

from aws_cdk import (
    aws_codebuild as codebuild,
    aws_codepipeline as codepipeline,
    aws_codepipeline_actions as codepipeline_actions,
    aws_ecr as ecr,
    aws_ecs as ecs,
    aws_iam as iam,
    aws_s3_assets as s3_assets,
    RemovalPolicy,
    Stack,
)
from constructs import Construct

from .config import DEFAULT_IMAGE_TAG, DEFAULT_REPOSITORY_NAME
from .contract import IMAGE_DEFINITIONS_FILE, STAGE_ORDER, Stage, build_environment, build_spec

DOCKER_CONTEXT = Path(__file__).resolve().parent.parent / "resources" / "docker_example"


class PipelineResources(Construct):
    """
    ECR repository, CodeBuild project and the source -> build -> deploy
    pipeline that ships the Docker context under resources/ to the service.
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        fargate_service: ecs.IBaseService,
        repository_name: str = DEFAULT_REPOSITORY_NAME,
        image_tag: str = DEFAULT_IMAGE_TAG,
        docker_context: Path = DOCKER_CONTEXT,
    ) -> None:
        super().__init__(scope, id)

        self.ecr_repository = ecr.Repository(
            self, "ecrRepository",
            image_scan_on_push=True,
            repository_name=repository_name,
            removal_policy=RemovalPolicy.DESTROY,
            empty_on_delete=True,
        )

        # the docker context is uploaded as a zip; its object key is what the
        # source stage watches
        self.bundle = s3_assets.Asset(self, "bundle", path=str(docker_context))

        self.code_build_role = iam.Role(
            self, "ecrRepositoryRole",
            assumed_by=iam.ServicePrincipal("codebuild.amazonaws.com"),
            inline_policies={
                "codeBuildPolicy": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(actions=["*"], resources=["*"]),
                        iam.PolicyStatement(
                            actions=["s3:GetObject"],
                            resources=[
                                f"arn:aws:s3:::{self.bundle.s3_bucket_name}",
                                f"arn:aws:s3:::{self.bundle.s3_bucket_name}/*",
                            ],
                        ),
                    ]
                )
            },
        )

        self.ecr_repository.grant_push(self.code_build_role)

        stack = Stack.of(self)
        environment_variables = {
            name: codebuild.BuildEnvironmentVariable(value=value)
            for name, value in build_environment(
                region=stack.region,
                account=stack.account,
                repo_name=self.ecr_repository.repository_name,
                repo_uri=self.ecr_repository.repository_uri,
                tag=image_tag,
            ).items()
        }

        self.project = codebuild.Project(
            self, "codeBuildProject",
            role=self.code_build_role,
            build_spec=codebuild.BuildSpec.from_object(build_spec()),
            source=codebuild.Source.s3(
                bucket=self.bundle.bucket,
                path=self.bundle.s3_object_key,
            ),
            environment=codebuild.BuildEnvironment(
                build_image=codebuild.LinuxArmBuildImage.AMAZON_LINUX_2_STANDARD_3_0,
                # docker builds need a privileged container
                privileged=True,
                environment_variables=environment_variables,
            ),
        )

        source_output = codepipeline.Artifact()
        build_output = codepipeline.Artifact()

        actions = {
            Stage.SOURCE: codepipeline_actions.S3SourceAction(
                action_name="S3Source",
                bucket=self.bundle.bucket,
                bucket_key=self.bundle.s3_object_key,
                output=source_output,
                trigger=codepipeline_actions.S3Trigger.EVENTS,
            ),
            Stage.BUILD: codepipeline_actions.CodeBuildAction(
                action_name="CodeBuild",
                project=self.project,
                input=source_output,
                outputs=[build_output],
            ),
            Stage.DEPLOY: codepipeline_actions.EcsDeployAction(
                action_name="Deploy",
                service=fargate_service,
                image_file=build_output.at_path(IMAGE_DEFINITIONS_FILE),
            ),
        }

        self.pipeline = codepipeline.Pipeline(
            self, "docker-codebuild-pipeline",
            stages=[
                codepipeline.StageProps(stage_name=stage.value, actions=[actions[stage]])
                for stage in STAGE_ORDER
            ],
        )
