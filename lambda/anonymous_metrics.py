"""
Installation identifier and anonymous usage reporting.

The usage record only carries enumerated, non-identifying fields. Sending it is
best effort: every failure is logged and swallowed so it can never block or
roll back a deployment.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import urllib3

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

METRICS_ENDPOINT = os.environ.get(
    "METRICS_ENDPOINT", "https://metrics.awssolutionsbuilder.com/generic"
)

# Only these resource properties may leave the account
REPORTED_FIELDS = ("Version", "Type", "EncodingProfile", "ChannelStart")

http = urllib3.PoolManager()


def installation_id(request_type: str, physical_resource_id: Optional[str] = None) -> str:
    """
    Return the installation identifier for a lifecycle event.

    A new random id is generated on Create. Updates and deletes reuse the
    identifier CloudFormation already holds as the physical resource id.
    """
    if request_type == "Create" or not physical_resource_id:
        return str(uuid.uuid4())
    return physical_resource_id


def build_usage_record(properties: Dict[str, Any], request_type: str) -> Dict[str, Any]:
    """Build the usage record from the custom resource properties."""
    data = {field: properties.get(field, "") for field in REPORTED_FIELDS}
    data["Cidr"] = "Yes" if properties.get("Cidr") else "No"
    data["RequestType"] = request_type

    return {
        "Solution": properties.get("SolutionId", ""),
        "UUID": properties.get("UUID", ""),
        "TimeStamp": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f"),
        "Data": data,
    }


def send_anonymous_metric(properties: Dict[str, Any], request_type: str) -> bool:
    """
    Post the usage record when SendAnonymousMetric is "Yes".

    Returns:
        True if the record was accepted by the endpoint, False otherwise
    """
    if properties.get("SendAnonymousMetric") != "Yes":
        logger.info("Anonymous metrics disabled")
        return False

    try:
        record = build_usage_record(properties, request_type)
        response = http.request(
            "POST",
            METRICS_ENDPOINT,
            body=json.dumps(record).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            timeout=urllib3.Timeout(connect=2.0, read=5.0),
            retries=False,
        )
        logger.info(f"Anonymous metric response status: {response.status}")
        return 200 <= response.status < 300
    except Exception as e:
        logger.warning(f"Failed to send anonymous metric: {str(e)}")
        return False
