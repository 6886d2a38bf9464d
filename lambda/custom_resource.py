"""
Custom resource handler for Live Streaming on AWS with Amazon S3.

Invoked by the CDK provider framework for every custom resource in the stack.
The ``Resource`` property names the action:

- MediaLiveInput: create/delete the input and its security group
- MediaLiveChannel: create/replace/delete the channel
- MediaLiveChannelStart: start the channel when ChannelStart is "Yes"
- UUID: generate the installation identifier once
- AnonymousMetric: send the anonymous usage record (never fails)

Returning from ``lambda_handler`` reports SUCCESS; raising reports FAILED.
Returned ``Data`` keys are read by the template through Fn::GetAtt.
"""

import copy
import json
import logging
import os
from typing import Any, Callable, Dict

import anonymous_metrics
import medialive_resources

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

REQUEST_TYPES = ("Create", "Update", "Delete")
MASKED_PROPERTIES = ("PullPass",)


def _masked(event: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of the event safe to log."""
    safe_event = copy.deepcopy(event)
    for key in ("ResourceProperties", "OldResourceProperties"):
        properties = safe_event.get(key) or {}
        for name in MASKED_PROPERTIES:
            if properties.get(name):
                properties[name] = "****"
    return safe_event


def handle_medialive_input(event: Dict[str, Any]) -> Dict[str, Any]:
    # Updates create a replacement input; CloudFormation then deletes the old one
    if event["RequestType"] == "Delete":
        medialive_resources.delete_input(event["PhysicalResourceId"])
        return {}

    data = medialive_resources.create_input(event["ResourceProperties"])
    return {"PhysicalResourceId": data["Id"], "Data": data}


def handle_medialive_channel(event: Dict[str, Any]) -> Dict[str, Any]:
    # Updates return a new channel id; CloudFormation then deletes the old one
    if event["RequestType"] == "Delete":
        medialive_resources.delete_channel(event["PhysicalResourceId"])
        return {}

    if event["RequestType"] == "Update":
        data = medialive_resources.replace_channel(
            event["PhysicalResourceId"],
            event["ResourceProperties"],
            event.get("OldResourceProperties", {}),
        )
    else:
        data = medialive_resources.create_channel(event["ResourceProperties"])
    return {"PhysicalResourceId": data["ChannelId"], "Data": data}


def handle_channel_start(event: Dict[str, Any]) -> Dict[str, Any]:
    # Deleting the start resource leaves the channel to the channel resource
    if event["RequestType"] != "Delete":
        medialive_resources.start_channel(event["ResourceProperties"])
    return {}


def handle_uuid(event: Dict[str, Any]) -> Dict[str, Any]:
    installation_id = anonymous_metrics.installation_id(
        event["RequestType"], event.get("PhysicalResourceId")
    )
    return {"PhysicalResourceId": installation_id, "Data": {"UUID": installation_id}}


def handle_anonymous_metric(event: Dict[str, Any]) -> Dict[str, Any]:
    anonymous_metrics.send_anonymous_metric(
        event.get("ResourceProperties", {}), event["RequestType"]
    )
    return {}


HANDLERS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "MediaLiveInput": handle_medialive_input,
    "MediaLiveChannel": handle_medialive_channel,
    "MediaLiveChannelStart": handle_channel_start,
    "UUID": handle_uuid,
    "AnonymousMetric": handle_anonymous_metric,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main handler for custom resource operations.

    Args:
        event: CloudFormation custom resource event from the provider framework
        context: Lambda runtime information

    Returns:
        Dict with an optional ``PhysicalResourceId`` and response ``Data``

    Raises:
        ValueError: for an unknown resource or request type
        botocore.exceptions.ClientError: when a MediaLive or SSM call fails
    """
    logger.info(f"Received event: {json.dumps(_masked(event), default=str)}")

    request_type = event.get("RequestType")
    if request_type not in REQUEST_TYPES:
        raise ValueError(f"Unknown request type: {request_type}")

    resource = event.get("ResourceProperties", {}).get("Resource")
    handler = HANDLERS.get(resource)
    if handler is None:
        raise ValueError(f"Unknown custom resource: {resource}")

    try:
        response = handler(event)
    except Exception as e:
        logger.error(f"{request_type} {resource} failed: {str(e)}")
        raise

    logger.info(f"{request_type} {resource} completed: {json.dumps(response, default=str)}")
    return response
