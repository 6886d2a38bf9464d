"""
MediaLive input and channel lifecycle for the custom resource handler.

Failures here are provisioning failures: errors are logged and re-raised so
CloudFormation marks the resource FAILED and rolls the stack back.
"""

import logging
import os
import uuid
from typing import Any, Dict, List

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

import encoding_profiles

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

# Initialize AWS clients
boto_config = Config(user_agent_extra=os.environ.get("SOLUTION_IDENTIFIER", ""))
medialive = boto3.client("medialive", config=boto_config)
ssm = boto3.client("ssm", config=boto_config)

PUSH_INPUT_TYPES = ("RTP_PUSH", "RTMP_PUSH")
PULL_ENDPOINT_PLACEHOLDER = "Push InputType only"
RUNNING_STATES = ("STARTING", "RUNNING", "RECOVERING")
DELETED_STATES = ("DELETING", "DELETED")
# Each waiter gives up after 200 s; a channel replacement chains three of them
WAITER_CONFIG = {"Delay": 5, "MaxAttempts": 40}


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "NotFoundException"


def _is_medialive_id(physical_resource_id: str) -> bool:
    # MediaLive ids are numeric; anything else is a placeholder left by a failed create
    return bool(physical_resource_id) and physical_resource_id.isdigit()


def validate_input_properties(properties: Dict[str, Any]) -> None:
    """
    Check the fields each input type depends on.

    Raises:
        ValueError: if the input type is unknown or a required field is empty
    """
    input_type = properties.get("Type")
    if input_type in PUSH_INPUT_TYPES:
        if not properties.get("Cidr"):
            raise ValueError(f"Cidr is required for {input_type} inputs")
    elif input_type == "URL_PULL":
        if not properties.get("PullUrl"):
            raise ValueError("PullUrl is required for URL_PULL inputs")
    elif input_type == "INPUT_DEVICE":
        if not properties.get("InputDeviceId"):
            raise ValueError("InputDeviceId is required for INPUT_DEVICE inputs")
    else:
        raise ValueError(f"Unknown input type: {input_type}")


def build_input_request(properties: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the CreateInput request for the configured input type.

    Only the fields relevant to the input type are included. For URL_PULL
    inputs with basic authentication the password is stored in Parameter
    Store and referenced by name; it never appears in the request.
    """
    validate_input_properties(properties)

    stream_name = properties["StreamName"]
    input_type = properties["Type"]
    request: Dict[str, Any] = {"Name": stream_name, "Type": input_type}

    if input_type in PUSH_INPUT_TYPES:
        security_group = medialive.create_input_security_group(
            WhitelistRules=[{"Cidr": properties["Cidr"]}],
        )["SecurityGroup"]
        logger.info(f"Created input security group {security_group['Id']}")
        request["InputSecurityGroups"] = [security_group["Id"]]

        if input_type == "RTMP_PUSH":
            request["Destinations"] = [{"StreamName": f"{stream_name}/stream"}]

    elif input_type == "URL_PULL":
        source = {"Url": properties["PullUrl"]}
        if properties.get("PullUser"):
            source["Username"] = properties["PullUser"]
            source["PasswordParam"] = store_pull_password(
                stream_name, properties.get("PullPass", "")
            )
        request["Sources"] = [source]

    elif input_type == "INPUT_DEVICE":
        request["InputDevices"] = [{"Id": properties["InputDeviceId"]}]

    return request


def store_pull_password(stream_name: str, password: str) -> str:
    """Store the pull source password as a SecureString and return its name."""
    name = f"/medialive/{stream_name}-{uuid.uuid4().hex[:8]}"
    ssm.put_parameter(
        Name=name,
        Description="Live Stream source password",
        Value=password,
        Type="SecureString",
        Overwrite=True,
    )
    logger.info(f"Stored pull password in parameter {name}")
    return name


def create_input(properties: Dict[str, Any]) -> Dict[str, str]:
    """
    Create a MediaLive input.

    Returns:
        Dict with the input ``Id`` and its ingress ``EndPoint``
    """
    request = build_input_request(properties)
    try:
        response = medialive.create_input(**request)
    except ClientError as e:
        logger.error(f"Failed to create {request['Type']} input: {e}")
        # The rollback delete never sees an input id, so clean up here
        delete_security_groups(request.get("InputSecurityGroups", []))
        delete_password_params(request.get("Sources", []))
        raise

    medialive_input = response["Input"]
    destinations = medialive_input.get("Destinations") or []
    if properties["Type"] in PUSH_INPUT_TYPES and destinations:
        endpoint = destinations[0]["Url"]
    else:
        endpoint = PULL_ENDPOINT_PLACEHOLDER

    logger.info(f"Created input {medialive_input['Id']} with endpoint {endpoint}")
    return {"Id": medialive_input["Id"], "EndPoint": endpoint}


def delete_input(input_id: str) -> None:
    """Delete an input, its security groups and any stored pull password."""
    if not _is_medialive_id(input_id):
        logger.info(f"Nothing to delete for input {input_id}")
        return

    try:
        medialive_input = medialive.describe_input(InputId=input_id)
    except ClientError as e:
        if _is_not_found(e):
            logger.info(f"Input {input_id} already deleted")
            return
        raise

    if medialive_input.get("State") in DELETED_STATES:
        logger.info(f"Input {input_id} is already {medialive_input['State']}")
        return

    if medialive_input.get("State") == "ATTACHED":
        medialive.get_waiter("input_detached").wait(
            InputId=input_id, WaiterConfig=WAITER_CONFIG
        )

    medialive.delete_input(InputId=input_id)
    medialive.get_waiter("input_deleted").wait(InputId=input_id, WaiterConfig=WAITER_CONFIG)
    logger.info(f"Deleted input {input_id}")

    delete_security_groups(medialive_input.get("SecurityGroups", []))
    delete_password_params(medialive_input.get("Sources", []))


def delete_security_groups(security_group_ids: List[str]) -> None:
    for security_group_id in security_group_ids:
        try:
            medialive.delete_input_security_group(InputSecurityGroupId=security_group_id)
            logger.info(f"Deleted input security group {security_group_id}")
        except ClientError as e:
            if not _is_not_found(e):
                raise


def delete_password_params(sources: List[Dict[str, Any]]) -> None:
    """Delete the Parameter Store entries holding pull source passwords."""
    for source in sources:
        if source.get("PasswordParam"):
            try:
                ssm.delete_parameter(Name=source["PasswordParam"])
                logger.info(f"Deleted pull password parameter {source['PasswordParam']}")
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") != "ParameterNotFound":
                    raise


def build_channel_request(properties: Dict[str, Any]) -> Dict[str, Any]:
    """Build the CreateChannel request writing HLS to the origin bucket."""
    profile = properties["EncodingProfile"]
    return {
        "Name": properties["StreamName"],
        "RoleArn": properties["Role"],
        "ChannelClass": "SINGLE_PIPELINE",
        "LogLevel": "DISABLED",
        "InputSpecification": encoding_profiles.input_specification(
            profile, properties["Codec"]
        ),
        "InputAttachments": [
            {
                "InputId": properties["InputId"],
                "InputAttachmentName": properties["StreamName"],
                "InputSettings": {
                    "SourceEndBehavior": "LOOP"
                    if properties.get("Type") == "URL_PULL"
                    else "CONTINUE",
                },
            }
        ],
        "Destinations": encoding_profiles.destinations(properties["S3Bucket"]),
        "EncoderSettings": encoding_profiles.encoder_settings(profile),
    }


def create_channel(properties: Dict[str, Any]) -> Dict[str, str]:
    """
    Create a MediaLive channel and wait until it is ready to start.

    Returns:
        Dict with the ``ChannelId``
    """
    request = build_channel_request(properties)
    try:
        channel = medialive.create_channel(**request)["Channel"]
    except ClientError as e:
        logger.error(f"Failed to create channel {request['Name']}: {e}")
        raise

    medialive.get_waiter("channel_created").wait(
        ChannelId=channel["Id"], WaiterConfig=WAITER_CONFIG
    )
    logger.info(f"Created channel {channel['Id']}")
    return {"ChannelId": channel["Id"]}


def replace_channel(
    channel_id: str, properties: Dict[str, Any], old_properties: Dict[str, Any]
) -> Dict[str, str]:
    """
    Create a replacement channel for an update.

    CloudFormation deletes the previous channel once the new id is returned.
    When the input is unchanged the previous channel still holds it, and an
    input attaches to one channel only, so that channel is deleted first.

    Returns:
        Dict with the new ``ChannelId``
    """
    if old_properties.get("InputId") == properties["InputId"]:
        logger.info(f"Input {properties['InputId']} is unchanged, deleting channel {channel_id}")
        delete_channel(channel_id)

    return create_channel(properties)


def delete_channel(channel_id: str) -> None:
    """Stop the channel if it is running, then delete it."""
    if not _is_medialive_id(channel_id):
        logger.info(f"Nothing to delete for channel {channel_id}")
        return

    try:
        state = medialive.describe_channel(ChannelId=channel_id)["State"]
    except ClientError as e:
        if _is_not_found(e):
            logger.info(f"Channel {channel_id} already deleted")
            return
        raise

    if state in DELETED_STATES:
        logger.info(f"Channel {channel_id} is already {state}")
        return

    if state in RUNNING_STATES:
        medialive.stop_channel(ChannelId=channel_id)
        medialive.get_waiter("channel_stopped").wait(
            ChannelId=channel_id, WaiterConfig=WAITER_CONFIG
        )
        logger.info(f"Stopped channel {channel_id}")

    medialive.delete_channel(ChannelId=channel_id)
    medialive.get_waiter("channel_deleted").wait(
        ChannelId=channel_id, WaiterConfig=WAITER_CONFIG
    )
    logger.info(f"Deleted channel {channel_id}")


def start_channel(properties: Dict[str, Any]) -> bool:
    """
    Start the channel when ChannelStart is "Yes".

    Returns:
        True if a start request was sent
    """
    channel_id = properties["ChannelId"]
    if properties.get("ChannelStart") != "Yes":
        logger.info(f"ChannelStart is not Yes, leaving channel {channel_id} as is")
        return False

    state = medialive.describe_channel(ChannelId=channel_id)["State"]
    if state in RUNNING_STATES:
        logger.info(f"Channel {channel_id} is already {state}")
        return False

    medialive.start_channel(ChannelId=channel_id)
    logger.info(f"Started channel {channel_id}")
    return True
