"""Global pytest configuration and fixtures for CDK testing."""

import os

import pytest
from aws_cdk import App, Environment
from aws_cdk.assertions import Template

from docker_codebuild.secret import create_origin_secret
from docker_codebuild.stack import DockerCodeBuild

_SCENARIO_HEADER = "X-From-CloudFront"
_SCENARIO_SECRET = "aB3xQ9kZ"


@pytest.fixture(scope="session", autouse=True)
def configure_test_environment():
    """Configure environment variables for consistent testing."""
    test_env = {
        "AWS_DEFAULT_REGION": "us-east-1",
        "CDK_DEFAULT_REGION": "us-east-1",
        "CDK_DEFAULT_ACCOUNT": "123456789012",
        "CDK_DISABLE_VERSION_CHECK": "true",
    }

    for key, value in test_env.items():
        if key not in os.environ:
            os.environ[key] = value


@pytest.fixture(scope="session")
def scenario_header():
    return _SCENARIO_HEADER


@pytest.fixture(scope="session")
def scenario_secret():
    return _SCENARIO_SECRET


@pytest.fixture
def origin_secret():
    return create_origin_secret(header_name=_SCENARIO_HEADER, value=_SCENARIO_SECRET)


@pytest.fixture(scope="module")
def template():
    """Synthesize the stack once per module with a known secret."""
    app = App()
    stack = DockerCodeBuild(
        app, "cdk-docker-codebuild-test",
        origin_secret=create_origin_secret(
            header_name=_SCENARIO_HEADER, value=_SCENARIO_SECRET
        ),
        env=Environment(account="123456789012", region="us-east-1"),
    )
    return Template.from_stack(stack)
