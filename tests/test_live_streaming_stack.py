"""
Unit tests for the LiveStreamingStack.

These tests synthesize the stack and verify the template: parameters,
storage and delivery, the MediaLive access policy, custom resource requests
and their ordering, and the outputs.
"""

import aws_cdk as cdk
import pytest
from aws_cdk import assertions

import medialive_resources
from live_streaming import config
from live_streaming.live_streaming_stack import LiveStreamingStack

MEDIALIVE_POLICY_ACTIONS = [
    ["s3:ListBucket", "s3:PutObject", "s3:GetObject", "s3:DeleteObject"],
    ["ssm:DescribeParameters", "ssm:GetParameter", "ssm:GetParameters", "ssm:PutParameter"],
    [
        "mediaconnect:ManagedDescribeFlow",
        "mediaconnect:ManagedAddOutput",
        "mediaconnect:ManagedRemoveOutput",
    ],
    [
        "ec2:describeSubnets",
        "ec2:describeNetworkInterfaces",
        "ec2:createNetworkInterface",
        "ec2:createNetworkInterfacePermission",
        "ec2:deleteNetworkInterface",
        "ec2:deleteNetworkInterfacePermission",
        "ec2:describeSecurityGroups",
    ],
    [
        "logs:CreateLogGroup",
        "logs:CreateLogStream",
        "logs:PutLogEvents",
        "logs:DescribeLogStreams",
        "logs:DescribeLogGroups",
    ],
]


def _custom_resources(template: assertions.Template) -> dict:
    """Custom resources keyed by their Resource property."""
    resources = template.find_resources("AWS::CloudFormation::CustomResource")
    return {
        resource["Properties"]["Resource"]: (logical_id, resource)
        for logical_id, resource in resources.items()
    }


def _as_list(value) -> list:
    return value if isinstance(value, list) else [value]


class TestLiveStreamingStack:
    """Test suite for the LiveStreamingStack class."""

    @pytest.fixture(scope="class")
    def stack(self) -> LiveStreamingStack:
        app = cdk.App()
        return LiveStreamingStack(app, "TestLiveStreaming")

    @pytest.fixture(scope="class")
    def template(self, stack: LiveStreamingStack) -> assertions.Template:
        return assertions.Template.from_stack(stack)

    def test_description(self, template: assertions.Template) -> None:
        assert template.to_json()["Description"] == (
            "(SO0109) Live Streaming on AWS with Amazon S3 Solution "
            f"{config.DEFAULT_SOLUTION_VERSION}"
        )

    def test_parameters(self, template: assertions.Template) -> None:
        """Test that every parameter is declared with its allowed values and default."""
        template.has_parameter("InputType", {
            "Type": "String",
            "AllowedValues": ["RTP_PUSH", "RTMP_PUSH", "URL_PULL", "INPUT_DEVICE"],
            "Default": "URL_PULL",
        })
        template.has_parameter("EncodingProfile", {
            "Type": "String",
            "AllowedValues": ["HD-1080p", "HD-720p", "SD-540p"],
            "Default": "HD-720p",
        })
        template.has_parameter("ChannelStart", {
            "Type": "String",
            "AllowedValues": ["Yes", "No"],
            "Default": "No",
        })
        template.has_parameter("PullUrl", {"Type": "String", "Default": config.DEFAULT_PULL_URL})
        template.has_parameter("PullPass", {"Type": "String", "Default": "", "NoEcho": True})

        for name in ["InputDeviceId", "InputCIDR", "PullUser"]:
            template.has_parameter(name, {"Type": "String", "Default": ""})

    def test_parameter_groups(self, template: assertions.Template) -> None:
        interface = template.to_json()["Metadata"]["AWS::CloudFormation::Interface"]

        grouped = [name for group in interface["ParameterGroups"] for name in group["Parameters"]]
        assert len(interface["ParameterGroups"]) == 5
        assert sorted(grouped) == sorted([
            "InputType", "PullUrl", "PullUser", "PullPass",
            "InputCIDR", "InputDeviceId", "EncodingProfile", "ChannelStart",
        ])

    def test_anonymous_data_mapping(self, template: assertions.Template) -> None:
        assert template.to_json()["Mappings"]["AnonymousData"] == {
            "SendAnonymousData": {"Data": "Yes"}
        }

    def test_origin_bucket(self, template: assertions.Template) -> None:
        """Test that the origin bucket is locked down, logged and measured."""
        template.has_resource_properties("AWS::S3::Bucket", {
            "MetricsConfigurations": [{"Id": "EntireBucket"}],
            "PublicAccessBlockConfiguration": {
                "BlockPublicAcls": True,
                "BlockPublicPolicy": True,
                "IgnorePublicAcls": True,
                "RestrictPublicBuckets": True,
            },
            "LoggingConfiguration": {
                "DestinationBucketName": assertions.Match.any_value(),
            },
        })

    def test_distribution_uses_origin_access_control(self, template: assertions.Template) -> None:
        template.resource_count_is("AWS::CloudFront::OriginAccessControl", 1)
        template.has_resource_properties("AWS::CloudFront::Distribution", {
            "DistributionConfig": {
                "Logging": {"Bucket": assertions.Match.any_value()},
            },
        })

    def test_no_security_headers_inserted(self, template: assertions.Template) -> None:
        template.resource_count_is("AWS::CloudFront::Function", 0)
        template.resource_count_is("AWS::CloudFront::ResponseHeadersPolicy", 0)

    def test_cache_policy_forwards_origin_header(self, template: assertions.Template) -> None:
        template.has_resource_properties("AWS::CloudFront::CachePolicy", {
            "CachePolicyConfig": {
                "ParametersInCacheKeyAndForwardedToOrigin": {
                    "HeadersConfig": {
                        "HeaderBehavior": "whitelist",
                        "Headers": ["Origin"],
                    },
                },
            },
        })

    def test_distribution_error_responses(self, template: assertions.Template) -> None:
        """Test that error statuses are cached for one second."""
        template.resource_count_is("AWS::CloudFront::Distribution", 1)
        template.has_resource_properties("AWS::CloudFront::Distribution", {
            "DistributionConfig": {
                "CustomErrorResponses": [
                    {"ErrorCode": status, "ErrorCachingMinTTL": 1}
                    for status in [400, 403, 404, 405, 414, 416, 500, 501, 502, 503, 504]
                ],
                "DefaultCacheBehavior": {
                    "ViewerProtocolPolicy": "redirect-to-https",
                },
            },
        })

    def test_medialive_role(self, template: assertions.Template) -> None:
        template.has_resource_properties("AWS::IAM::Role", {
            "AssumeRolePolicyDocument": {
                "Statement": [
                    {
                        "Action": "sts:AssumeRole",
                        "Effect": "Allow",
                        "Principal": {"Service": "medialive.amazonaws.com"},
                    }
                ],
            },
        })

    def test_medialive_policy_statements(self, template: assertions.Template) -> None:
        """Test that the MediaLive policy keeps its exact action lists."""
        policies = template.find_resources("AWS::IAM::Policy")
        statements = next(
            policy["Properties"]["PolicyDocument"]["Statement"]
            for policy in policies.values()
            if any(
                "mediaconnect:ManagedAddOutput" in _as_list(statement["Action"])
                for statement in policy["Properties"]["PolicyDocument"]["Statement"]
            )
        )

        assert len(statements) == 5
        for statement, expected in zip(statements, MEDIALIVE_POLICY_ACTIONS):
            assert statement["Effect"] == "Allow"
            assert sorted(_as_list(statement["Action"])) == sorted(expected)

        assert statements[0]["Condition"] == {
            "StringEquals": {"s3:ResourceAccount": {"Ref": "AWS::AccountId"}}
        }
        assert statements[4]["Resource"] == {
            "Fn::Join": ["", ["arn:", {"Ref": "AWS::Partition"}, ":logs:*:*:*"]]
        }

    def test_custom_resource_function(self, template: assertions.Template) -> None:
        template.has_resource_properties("AWS::Lambda::Function", {
            "Handler": "custom_resource.lambda_handler",
            "Runtime": "python3.12",
            "Timeout": 900,
            "Environment": {
                "Variables": {
                    "SOLUTION_IDENTIFIER": f"AwsSolution/SO0109/{config.DEFAULT_SOLUTION_VERSION}",
                    "LOG_LEVEL": "INFO",
                },
            },
        })

    def test_handler_waiters_fit_in_function_timeout(self, template: assertions.Template) -> None:
        """Test that a channel replacement (three chained waiters) cannot outlive the function."""
        functions = template.find_resources(
            "AWS::Lambda::Function",
            {"Properties": {"Handler": "custom_resource.lambda_handler"}},
        )
        (function,) = functions.values()
        waiter_seconds = (
            medialive_resources.WAITER_CONFIG["Delay"]
            * medialive_resources.WAITER_CONFIG["MaxAttempts"]
        )

        assert 3 * waiter_seconds < function["Properties"]["Timeout"]

    def test_five_provisioning_actions(self, template: assertions.Template) -> None:
        template.resource_count_is("AWS::CloudFormation::CustomResource", 5)
        assert sorted(_custom_resources(template)) == sorted([
            "MediaLiveInput",
            "MediaLiveChannel",
            "MediaLiveChannelStart",
            "UUID",
            "AnonymousMetric",
        ])

    def test_medialive_input_request(self, template: assertions.Template) -> None:
        template.has_resource_properties("AWS::CloudFormation::CustomResource", {
            "Resource": "MediaLiveInput",
            "StreamName": {"Ref": "AWS::StackName"},
            "Type": {"Ref": "InputType"},
            "InputDeviceId": {"Ref": "InputDeviceId"},
            "Cidr": {"Ref": "InputCIDR"},
            "PullUrl": {"Ref": "PullUrl"},
            "PullUser": {"Ref": "PullUser"},
            "PullPass": {"Ref": "PullPass"},
        })

    def test_medialive_channel_request(self, template: assertions.Template) -> None:
        resources = _custom_resources(template)
        input_id, _ = resources["MediaLiveInput"]
        _, channel = resources["MediaLiveChannel"]
        bucket_id = next(
            logical_id
            for logical_id, bucket in template.find_resources("AWS::S3::Bucket").items()
            if "MetricsConfigurations" in bucket["Properties"]
        )

        properties = channel["Properties"]
        assert properties["Codec"] == "AVC"
        assert properties["EncodingProfile"] == {"Ref": "EncodingProfile"}
        assert properties["Type"] == {"Ref": "InputType"}
        assert properties["InputId"] == {"Fn::GetAtt": [input_id, "Id"]}
        assert properties["S3Bucket"] == {"Ref": bucket_id}
        assert properties["Role"]["Fn::GetAtt"][1] == "Arn"

    def test_channel_created_after_storage_and_delivery(self, template: assertions.Template) -> None:
        """Test that the channel depends on the bucket and distribution."""
        _, channel = _custom_resources(template)["MediaLiveChannel"]
        depends_on = channel.get("DependsOn", [])

        for resource_type in ["AWS::S3::Bucket", "AWS::CloudFront::Distribution"]:
            for logical_id in template.find_resources(resource_type):
                assert logical_id in depends_on

    def test_channel_start_follows_channel(self, template: assertions.Template) -> None:
        resources = _custom_resources(template)
        channel_id, _ = resources["MediaLiveChannel"]
        _, start = resources["MediaLiveChannelStart"]

        assert start["Properties"]["ChannelId"] == {"Fn::GetAtt": [channel_id, "ChannelId"]}
        assert start["Properties"]["ChannelStart"] == {"Ref": "ChannelStart"}

    def test_anonymous_metric_request_has_no_source_details(self, template: assertions.Template) -> None:
        """Test that the usage record never receives the pull URL or credentials."""
        resources = _custom_resources(template)
        uuid_id, _ = resources["UUID"]
        _, metric = resources["AnonymousMetric"]
        properties = metric["Properties"]

        for field in ["PullUrl", "PullUser", "PullPass", "InputDeviceId"]:
            assert field not in properties

        assert properties["SolutionId"] == "SO0109"
        assert properties["UUID"] == {"Fn::GetAtt": [uuid_id, "UUID"]}
        assert properties["Version"] == config.DEFAULT_SOLUTION_VERSION
        assert "SendAnonymousMetric" in properties

    def test_outputs(self, template: assertions.Template) -> None:
        """Test that exactly the five operator outputs are exported."""
        outputs = template.to_json()["Outputs"]
        assert sorted(outputs) == sorted([
            "LiveStreamUrl",
            "MediaLiveConsole",
            "LiveStreamBucket",
            "BucketMetrics",
            "MediaLivePushEndpoint",
        ])

        template.has_output("LiveStreamUrl", {
            "Description": "CloudFront Live Stream URL",
            "Export": {"Name": {"Fn::Join": ["", [{"Ref": "AWS::StackName"}, "-LiveStreamUrl"]]}},
        })
        template.has_output("MediaLivePushEndpoint", {
            "Export": {"Name": {"Fn::Join": ["", [{"Ref": "AWS::StackName"}, "-MediaLiveEndpoint"]]}},
        })

        input_id, _ = _custom_resources(template)["MediaLiveInput"]
        assert outputs["MediaLivePushEndpoint"]["Value"] == {"Fn::GetAtt": [input_id, "EndPoint"]}

    def test_live_stream_url_points_at_hls_manifest(self, template: assertions.Template) -> None:
        value = template.to_json()["Outputs"]["LiveStreamUrl"]["Value"]
        parts = value["Fn::Join"][1]

        assert parts[0] == "https://"
        assert parts[-1] == "/stream/index.m3u8"


class TestLiveStreamingStackSettings:
    """Tests for stack settings passed from context."""

    def test_anonymous_data_disabled(self) -> None:
        stack = LiveStreamingStack(cdk.App(), "NoMetrics", send_anonymous_data="No")
        template = assertions.Template.from_stack(stack)

        assert template.to_json()["Mappings"]["AnonymousData"] == {
            "SendAnonymousData": {"Data": "No"}
        }

    def test_log_level_and_version(self) -> None:
        stack = LiveStreamingStack(
            cdk.App(), "Debug", solution_version="v9.9.9", log_level="DEBUG"
        )
        template = assertions.Template.from_stack(stack)

        template.has_resource_properties("AWS::Lambda::Function", {
            "Handler": "custom_resource.lambda_handler",
            "Environment": {
                "Variables": {
                    "SOLUTION_IDENTIFIER": "AwsSolution/SO0109/v9.9.9",
                    "LOG_LEVEL": "DEBUG",
                },
            },
        })
