"""
Stage contract of the build-and-deploy pipeline.

The pipeline has three stages, source -> build -> deploy. Each stage consumes
the artifact produced by the one before it. The build stage hands the deploy
stage a single file, ``imagedefinitions.json``, which maps the container name
of the Fargate task to the image that was just pushed.

This module holds the pieces of that contract that the CDK constructs use
(buildspec, build environment, descriptor format) and a small in-process
model of a pipeline run used to check the ordering and failure rules.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import json

from .errors import InvalidImageDefinitionsError, PipelineStateError, StageFailedError
from .logger import get_logger

logger = get_logger("docker-codebuild.contract")

IMAGE_DEFINITIONS_FILE = "imagedefinitions.json"
CONTAINER_NAME = "cdk-codebuild"
ECR_REGISTRY = "$AWS_ACCOUNT_ID.dkr.ecr.$AWS_DEFAULT_REGION.amazonaws.com"


class Stage(Enum):
    SOURCE = "source"
    BUILD = "build"
    DEPLOY = "deploy"


STAGE_ORDER = (Stage.SOURCE, Stage.BUILD, Stage.DEPLOY)


@dataclass(frozen=True)
class Artifact:
    name: str
    files: Dict[str, str] = field(default_factory=dict)


def image_uri(repo_uri: str, tag: str) -> str:
    return f"{repo_uri}:{tag}"


def image_definitions(
    repo_uri: str, tag: str, container_name: str = CONTAINER_NAME
) -> List[Dict[str, str]]:
    return [{"name": container_name, "imageUri": image_uri(repo_uri, tag)}]


def render_image_definitions(
    repo_uri: str, tag: str, container_name: str = CONTAINER_NAME
) -> str:
    """Serialize the descriptor exactly as the buildspec's printf writes it."""
    return json.dumps(
        image_definitions(repo_uri, tag, container_name), separators=(",", ":")
    )


def parse_image_definitions(text: str) -> List[Dict[str, str]]:
    try:
        records = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidImageDefinitionsError(f"not valid JSON: {e}") from e

    if not isinstance(records, list) or len(records) != 1:
        raise InvalidImageDefinitionsError("expected a list with exactly one record")
    record = records[0]
    if not isinstance(record, dict) or not record.get("name") or not record.get("imageUri"):
        raise InvalidImageDefinitionsError("record needs both 'name' and 'imageUri'")
    return records


def build_spec(
    container_name: str = CONTAINER_NAME,
    definitions_file: str = IMAGE_DEFINITIONS_FILE,
) -> Dict[str, Any]:
    """The CodeBuild buildspec: login, build, tag, push, then write the descriptor."""
    registry_image = f"{ECR_REGISTRY}/$IMAGE_REPO_NAME:$IMAGE_TAG"
    descriptor = json.dumps(
        [{"name": container_name, "imageUri": "%s"}], separators=(",", ":")
    )
    return {
        "version": "0.2",
        "phases": {
            "pre_build": {
                "commands": [
                    "echo Logging in to Amazon ECR...",
                    "aws ecr get-login-password --region $AWS_DEFAULT_REGION"
                    f" | docker login --username AWS --password-stdin {ECR_REGISTRY}",
                ]
            },
            "build": {
                "commands": [
                    "echo Build started on `date`",
                    "echo Building the Docker image...",
                    "docker build -t $IMAGE_REPO_NAME:$IMAGE_TAG .",
                    f"docker tag $IMAGE_REPO_NAME:$IMAGE_TAG {registry_image}",
                ]
            },
            "post_build": {
                "commands": [
                    "echo Build completed on `date`",
                    "echo Pushing the Docker image...",
                    f"docker push {registry_image}",
                    "echo Writing image definitions file...",
                    f"printf '{descriptor}' $IMAGE_REPO_URI:$IMAGE_TAG > {definitions_file}",
                ]
            },
        },
        "artifacts": {"files": [definitions_file]},
    }


def build_environment(
    region: str, account: str, repo_name: str, repo_uri: str, tag: str = "latest"
) -> Dict[str, str]:
    return {
        "AWS_DEFAULT_REGION": region,
        "AWS_ACCOUNT_ID": account,
        "IMAGE_REPO_NAME": repo_name,
        "IMAGE_REPO_URI": repo_uri,
        "IMAGE_TAG": tag,
    }


class ServiceDeployment:
    """Images currently running in the service, keyed by container name."""

    def __init__(self, images: Optional[Dict[str, str]] = None) -> None:
        self.images = dict(images or {})
        self.rollouts = 0

    def apply(self, definitions: List[Dict[str, str]]) -> bool:
        changed = {
            record["name"]: record["imageUri"]
            for record in definitions
            if self.images.get(record["name"]) != record["imageUri"]
        }
        if not changed:
            return False
        self.images.update(changed)
        self.rollouts += 1
        return True


StageHandler = Callable[[Any], Artifact]


class RunStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PipelineRun:
    """
    One run of the pipeline.

    Stages execute strictly in STAGE_ORDER. A stage that raises stops the
    run; nothing is retried until ``retry`` is called for that stage.
    """

    def __init__(self, handlers: Dict[Stage, StageHandler]) -> None:
        missing = [stage.value for stage in STAGE_ORDER if stage not in handlers]
        if missing:
            raise ValueError(f"missing handlers for stages: {', '.join(missing)}")
        self.handlers = handlers
        self.status = RunStatus.PENDING
        self.failed_stage: Optional[Stage] = None
        self.completed: List[Stage] = []
        self.inputs: Dict[Stage, Any] = {}
        self.outputs: Dict[Stage, Artifact] = {}

    def run(self, source_key: str) -> Dict[Stage, Artifact]:
        if self.status is not RunStatus.PENDING:
            raise PipelineStateError("a run can only be started once")
        self.inputs[Stage.SOURCE] = source_key
        return self._execute_from(0)

    def retry(self, stage: Stage) -> Dict[Stage, Artifact]:
        if stage not in self.inputs:
            raise PipelineStateError(f"stage '{stage.value}' has no input artifact yet")
        return self._execute_from(STAGE_ORDER.index(stage))

    def _execute_from(self, index: int) -> Dict[Stage, Artifact]:
        self.status = RunStatus.IN_PROGRESS
        self.failed_stage = None
        for stage in STAGE_ORDER[index:]:
            logger.info("starting stage %s", stage.value)
            try:
                artifact = self.handlers[stage](self.inputs[stage])
            except Exception as e:
                self.status = RunStatus.FAILED
                self.failed_stage = stage
                logger.error("stage %s failed: %s", stage.value, e)
                raise StageFailedError(stage, e) from e

            self.outputs[stage] = artifact
            if stage not in self.completed:
                self.completed.append(stage)
            position = STAGE_ORDER.index(stage)
            if position + 1 < len(STAGE_ORDER):
                self.inputs[STAGE_ORDER[position + 1]] = artifact

        self.status = RunStatus.SUCCEEDED
        return dict(self.outputs)
