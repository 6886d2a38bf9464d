#!/usr/bin/env python3
"""
Live Streaming on AWS with Amazon S3 CDK Application

Synthesizes the CloudFormation template for a live streaming pipeline:
- MediaLive input and channel created through custom resources
- S3 origin bucket holding the HLS output
- CloudFront distribution for playback
- IAM role MediaLive assumes to write the stream

Settings come from CDK context (cdk.json or ``-c key=value``):
solution_version, log_level, send_anonymous_data, enable_cdk_nag.
"""

import os

import aws_cdk as cdk
from aws_cdk import App, Aspects, Environment
from cdk_nag import AwsSolutionsChecks

from live_streaming.config import load_settings
from live_streaming.live_streaming_stack import LiveStreamingStack


def build_app(app: App) -> LiveStreamingStack:
    """Create the stack in ``app`` from its context settings."""
    settings = load_settings(app.node)

    env = None
    account = os.environ.get("CDK_DEFAULT_ACCOUNT")
    region = os.environ.get("CDK_DEFAULT_REGION")
    if account and region:
        env = Environment(account=account, region=region)

    stack = LiveStreamingStack(
        app,
        "LiveStreaming",
        solution_version=settings["solution_version"],
        log_level=settings["log_level"],
        send_anonymous_data=settings["send_anonymous_data"],
        env=env,
    )

    if settings["enable_cdk_nag"]:
        Aspects.of(app).add(AwsSolutionsChecks(verbose=True))

    return stack


def main() -> None:
    """
    Main application entry point.

    Builds the stack and synthesizes the CloudFormation template.
    """
    app = cdk.App()
    build_app(app)
    app.synth()


if __name__ == "__main__":
    main()
