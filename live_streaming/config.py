"""
Configuration constants for the Live Streaming on AWS with Amazon S3 stack.

Parameter schema (allowed values and defaults), solution identifiers and the
CDK context keys read by the application live here so that the stack, the
custom resource handler wiring and the tests share a single source.
"""

from typing import Any, Dict, List

SOLUTION_ID = "SO0109"
SOLUTION_NAME = "Live Streaming on AWS with Amazon S3"
DEFAULT_SOLUTION_VERSION = "v2.1.0"

# Stack parameters
INPUT_TYPES: List[str] = ["RTP_PUSH", "RTMP_PUSH", "URL_PULL", "INPUT_DEVICE"]
DEFAULT_INPUT_TYPE = "URL_PULL"

ENCODING_PROFILES: List[str] = ["HD-1080p", "HD-720p", "SD-540p"]
DEFAULT_ENCODING_PROFILE = "HD-720p"

CHANNEL_START_VALUES: List[str] = ["Yes", "No"]
DEFAULT_CHANNEL_START = "No"

ANONYMOUS_DATA_VALUES: List[str] = ["Yes", "No"]

DEFAULT_PULL_URL = (
    "https://d15an60oaeed9r.cloudfront.net/live_stream_v2/sports_reel_with_markers.m3u8"
)

CHANNEL_CODEC = "AVC"

# Delivery
FORWARDED_HEADERS: List[str] = ["Origin"]
ERROR_STATUS_CODES: List[int] = [400, 403, 404, 405, 414, 416, 500, 501, 502, 503, 504]
ERROR_CACHING_TTL_SECONDS = 1
BUCKET_METRICS_ID = "EntireBucket"
STREAM_PATH = "stream/index.m3u8"

LOG_LEVELS: List[str] = ["DEBUG", "INFO", "WARNING", "ERROR"]

# CDK context keys and their defaults
CONTEXT_DEFAULTS: Dict[str, Any] = {
    "solution_version": DEFAULT_SOLUTION_VERSION,
    "log_level": "INFO",
    "send_anonymous_data": "Yes",
    "enable_cdk_nag": False,
}


def solution_identifier(version: str) -> str:
    """User agent suffix the handler passes to the AWS SDK."""
    return f"AwsSolution/{SOLUTION_ID}/{version}"


def load_settings(node: Any) -> Dict[str, Any]:
    """
    Read stack settings from CDK context, falling back to defaults.

    Args:
        node: construct node (usually ``app.node``) used for context lookups

    Returns:
        Dict of validated settings keyed like ``CONTEXT_DEFAULTS``

    Raises:
        ValueError: if a context value is outside its allowed set
    """
    settings = {}
    for key, default in CONTEXT_DEFAULTS.items():
        value = node.try_get_context(key)
        settings[key] = default if value is None else value

    settings["log_level"] = str(settings["log_level"]).upper()
    if settings["log_level"] not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log_level '{settings['log_level']}', expected one of {LOG_LEVELS}"
        )

    if settings["send_anonymous_data"] not in ANONYMOUS_DATA_VALUES:
        raise ValueError(
            f"Invalid send_anonymous_data '{settings['send_anonymous_data']}', expected Yes or No"
        )

    # context passed on the command line arrives as a string
    if isinstance(settings["enable_cdk_nag"], str):
        settings["enable_cdk_nag"] = settings["enable_cdk_nag"].lower() == "true"

    return settings
