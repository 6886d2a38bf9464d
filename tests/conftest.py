"""
Shared pytest fixtures for the Live Streaming stack and custom resource tests.
"""

import os
import sys

import pytest

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LAMBDA_DIR = os.path.join(ROOT_DIR, "lambda")

# The stack modules live at the repository root, the handler modules in the
# Lambda asset directory where they import each other as top-level modules
sys.path.insert(0, ROOT_DIR)
sys.path.insert(0, LAMBDA_DIR)

# boto3 clients are created at import time and need a region
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def cfn_event():
    """Factory for provider framework events."""

    def _event(resource, request_type="Create", properties=None, physical_resource_id=None):
        event = {
            "RequestType": request_type,
            "RequestId": "c1a9d53b-4c38-4a5e-9a62-2f3d7e0b9f11",
            "StackId": "arn:aws:cloudformation:us-east-1:123456789012:stack/LiveStreaming/guid",
            "LogicalResourceId": resource,
            "ResourceType": "AWS::CloudFormation::CustomResource",
            "ResourceProperties": {"Resource": resource, **(properties or {})},
        }
        if physical_resource_id is not None:
            event["PhysicalResourceId"] = physical_resource_id
        return event

    return _event
