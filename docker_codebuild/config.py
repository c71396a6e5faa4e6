from dataclasses import dataclass
from typing import Optional
import os
import dotenv

from .errors import ConfigurationError
from .secret import (
    DEFAULT_HEADER_NAME,
    DEFAULT_SECRET_LENGTH,
    check_secret_length,
    check_secret_value,
)

DEFAULT_STACK_NAME = "cdk-docker-codebuild-dev"
DEFAULT_REPOSITORY_NAME = "docker-codebuild"
DEFAULT_IMAGE_TAG = "latest"


@dataclass(frozen=True)
class Settings:
    account: Optional[str] = None
    region: Optional[str] = None
    stack_name: str = DEFAULT_STACK_NAME
    header_name: str = DEFAULT_HEADER_NAME
    secret_length: int = DEFAULT_SECRET_LENGTH
    # a fixed secret is only for redeploys that must keep the edge and origin in step
    secret: Optional[str] = None
    repository_name: str = DEFAULT_REPOSITORY_NAME
    image_tag: str = DEFAULT_IMAGE_TAG


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(load_dotenv: bool = True) -> Settings:
    """Build the deployment settings from a .env file and the process environment."""
    if load_dotenv:
        dotenv.load_dotenv()

    # set up account and region for the app
    account = os.environ.get("AWS_ACCOUNT_ID") or os.environ.get("CDK_DEFAULT_ACCOUNT")
    region = os.environ.get("AWS_REGION") or os.environ.get("CDK_DEFAULT_REGION")

    secret = os.environ.get("ORIGIN_SECRET") or None
    try:
        secret_length = check_secret_length(
            _int_from_env("ORIGIN_SECRET_LENGTH", DEFAULT_SECRET_LENGTH)
        )
        if secret is not None:
            check_secret_value(secret)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    return Settings(
        account=account,
        region=region,
        stack_name=os.environ.get("STACK_NAME", DEFAULT_STACK_NAME),
        header_name=os.environ.get("ORIGIN_HEADER_NAME", DEFAULT_HEADER_NAME),
        secret_length=secret_length,
        secret=secret,
        repository_name=os.environ.get("ECR_REPOSITORY_NAME", DEFAULT_REPOSITORY_NAME),
        image_tag=os.environ.get("IMAGE_TAG", DEFAULT_IMAGE_TAG),
    )
