#!/usr/bin/env python3
from aws_cdk import App
from aws_cdk import Environment
from docker_codebuild.config import load_settings
from docker_codebuild.stack import DockerCodeBuild

settings = load_settings()

app = App()
DockerCodeBuild(
    app, settings.stack_name,
    settings=settings,
    env=Environment(account=settings.account, region=settings.region)
)

app.synth()
