"""
CDK Stack for Live Streaming on AWS with Amazon S3.

This stack compiles seven input parameters into a CloudFormation template that
provisions:
- An S3 origin bucket fronted by a CloudFront distribution
- An IAM role MediaLive assumes to write the stream into the bucket
- A Lambda-backed custom resource provider
- Custom resources creating the MediaLive input and channel, optionally
  starting the channel, and reporting anonymous usage
"""

import os
from typing import Any, Dict, Optional

from aws_cdk import (
    Aws,
    CfnMapping,
    CfnOutput,
    CfnParameter,
    CustomResource,
    Duration,
    Fn,
    RemovalPolicy,
    Stack,
    Tags,
    aws_cloudfront as cloudfront,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    custom_resources as cr,
)
from aws_solutions_constructs.aws_cloudfront_s3 import CloudFrontToS3
from cdk_nag import NagSuppressions
from constructs import Construct

from live_streaming import config
from live_streaming.medialive_access import MediaLiveAccess

LAMBDA_ASSET_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "lambda"
)


class LiveStreamingStack(Stack):
    """
    Live streaming pipeline: MediaLive input and channel writing HLS to S3,
    delivered through CloudFront.

    Creation order matters for two custom resources. The channel needs the
    resolved bucket name and input id, and the start request needs the
    channel id; both are declared explicitly below.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        solution_version: str = config.DEFAULT_SOLUTION_VERSION,
        log_level: str = "INFO",
        send_anonymous_data: str = "Yes",
        **kwargs: Any,
    ) -> None:
        """
        Initialize the Live Streaming Stack.

        Args:
            scope: The parent construct
            construct_id: The construct identifier
            solution_version: Version reported in the description and usage record
            log_level: Log level of the custom resource handler
            send_anonymous_data: "Yes" or "No", the anonymous usage switch
            **kwargs: Additional keyword arguments passed to Stack
        """
        kwargs.setdefault(
            "description",
            f"({config.SOLUTION_ID}) {config.SOLUTION_NAME} Solution {solution_version}",
        )
        super().__init__(scope, construct_id, **kwargs)

        self.solution_version = solution_version
        self.log_level = log_level
        self.send_anonymous_data = send_anonymous_data

        self._create_parameters()
        self._create_template_metadata()
        self._create_mappings()

        self._create_storage_and_delivery()
        self._create_medialive_access()
        self._create_custom_resource_provider()

        self._create_medialive_input()
        self._create_medialive_channel()
        self._create_channel_start()
        self._create_anonymous_metric()

        self._create_outputs()
        self._add_nag_suppressions()
        self._add_tags()

    def _create_parameters(self) -> None:
        """Create CloudFormation parameters for the stream source and encoding."""
        self.input_type = CfnParameter(
            self,
            "InputType",
            type="String",
            description=(
                "Specify the input type for MediaLive (default parameters are for the demo video). "
                "For details on setting up each input type, see "
                "https://docs.aws.amazon.com/solutions/latest/live-streaming-on-aws-with-amazon-s3/appendix-a.html."
            ),
            allowed_values=config.INPUT_TYPES,
            default=config.DEFAULT_INPUT_TYPE,
        )

        self.input_device_id = CfnParameter(
            self,
            "InputDeviceId",
            type="String",
            description=(
                "Specify the ID for your Elemental Link Input device "
                "(please note a Link device can only be attached to one input at a time)"
            ),
            default="",
        )

        self.input_cidr = CfnParameter(
            self,
            "InputCIDR",
            type="String",
            description=(
                "For RTP and RTMP PUSH input types ONLY, specify the CIDR Block for the MediaLive "
                "SecurityGroup. Input security group restricts access to the input and prevents "
                "unauthorized third parties from pushing content into a channel that is associated "
                "with that input."
            ),
            default="",
        )

        self.pull_url = CfnParameter(
            self,
            "PullUrl",
            type="String",
            description=(
                "For URL PULL input type ONLY, specify the primary source URL, this should be a "
                "HTTP or HTTPS link to the stream manifest file."
            ),
            default=config.DEFAULT_PULL_URL,
        )

        self.pull_user = CfnParameter(
            self,
            "PullUser",
            type="String",
            description=(
                "For URL PULL input type ONLY, if basic authentication is enabled on the source "
                "stream enter the username"
            ),
            default="",
        )

        self.pull_pass = CfnParameter(
            self,
            "PullPass",
            type="String",
            description=(
                "For URL PULL input type ONLY, if basic authentication is enabled on the source "
                "stream enter the password"
            ),
            default="",
            no_echo=True,
        )

        self.encoding_profile = CfnParameter(
            self,
            "EncodingProfile",
            type="String",
            description=(
                "Select an encoding profile. "
                "HD 1080p [1920x1080, 1280x720, 960x540, 768x432, 640x360, 512x288] "
                "HD 720p [1280x720, 960x540, 768x432, 640x360, 512x288] "
                "SD 540p [960x540, 768x432, 640x360, 512x288]  "
                "See the implementation guide for details "
                "https://docs.aws.amazon.com/solutions/latest/live-streaming/considerations.html"
            ),
            allowed_values=config.ENCODING_PROFILES,
            default=config.DEFAULT_ENCODING_PROFILE,
        )

        self.channel_start = CfnParameter(
            self,
            "ChannelStart",
            type="String",
            description=(
                "If your source is ready to stream select Yes, this will start the MediaLive "
                "Channel as part of the deployment. If you select No you will need to manually "
                "start the MediaLive Channel when your source is ready."
            ),
            allowed_values=config.CHANNEL_START_VALUES,
            default=config.DEFAULT_CHANNEL_START,
        )

    def _create_template_metadata(self) -> None:
        """Group and label the parameters in the CloudFormation console."""
        self.template_options.metadata = {
            "AWS::CloudFormation::Interface": {
                "ParameterGroups": [
                    {
                        "Label": {"default": "LIVE STREAM SOURCE"},
                        "Parameters": [self.input_type.logical_id],
                    },
                    {
                        "Label": {"default": "URL_PULL CONFIGURATION"},
                        "Parameters": [
                            self.pull_url.logical_id,
                            self.pull_user.logical_id,
                            self.pull_pass.logical_id,
                        ],
                    },
                    {
                        "Label": {"default": "RTP_PUSH / RTMP_PUSH CONFIGURATION"},
                        "Parameters": [self.input_cidr.logical_id],
                    },
                    {
                        "Label": {"default": "INPUT_DEVICE CONFIGURATION"},
                        "Parameters": [self.input_device_id.logical_id],
                    },
                    {
                        "Label": {"default": "ENCODING OPTIONS"},
                        "Parameters": [
                            self.encoding_profile.logical_id,
                            self.channel_start.logical_id,
                        ],
                    },
                ],
                "ParameterLabels": {
                    "InputType": {"default": "Source Input Type"},
                    "EncodingProfile": {"default": "Encoding Profile"},
                    "InputDeviceId": {"default": "Elemental Link Input Device ID"},
                    "InputCIDR": {"default": "Input Security Group CIDR Block (REQUIRED)"},
                    "PullUrl": {"default": "Source URL (REQUIRED)"},
                    "PullUser": {"default": "Source Username (OPTIONAL)"},
                    "PullPass": {"default": "Source Password (OPTIONAL)"},
                    "ChannelStart": {"default": "Start MediaLive Channel"},
                },
            }
        }

    def _create_mappings(self) -> None:
        """Mapping holding the switch for sending anonymous usage data."""
        CfnMapping(
            self,
            "AnonymousData",
            mapping={"SendAnonymousData": {"Data": self.send_anonymous_data}},
        )

    def _create_storage_and_delivery(self) -> None:
        """
        Create the S3 origin bucket fronted by CloudFront.

        The solutions construct provides the buckets, logging and origin access
        control; the stack adds the cache policy, short-lived error caching and
        request metrics on the origin bucket.
        """
        self.cache_policy = cloudfront.CachePolicy(
            self,
            "CachePolicy",
            comment="Live streaming cache policy forwarding the Origin header",
            header_behavior=cloudfront.CacheHeaderBehavior.allow_list(
                *config.FORWARDED_HEADERS
            ),
        )

        # Distribution props are merged with the construct defaults as-is,
        # so keys use the CloudFront API casing
        error_ttl = Duration.seconds(config.ERROR_CACHING_TTL_SECONDS)
        self.cloudfront_to_s3 = CloudFrontToS3(
            self,
            "CloudFrontToS3",
            cloud_front_distribution_props={
                "defaultBehavior": {"cachePolicy": self.cache_policy},
                "errorResponses": [
                    {"httpStatus": http_status, "ttl": error_ttl}
                    for http_status in config.ERROR_STATUS_CODES
                ],
            },
            insert_http_security_headers=False,
        )

        self.cloudfront_to_s3.s3_bucket.add_metric(
            id=config.BUCKET_METRICS_ID
        )

    def _create_medialive_access(self) -> None:
        self.medialive_access = MediaLiveAccess(
            self, "MediaLiveAccess", bucket=self.cloudfront_to_s3.s3_bucket
        )

    def _create_custom_resource_provider(self) -> None:
        """
        Create the Lambda function and provider serving every custom resource.

        The function only gets the MediaLive, Parameter Store and PassRole
        permissions the input and channel actions need.
        """
        self.custom_resource_log_group = logs.LogGroup(
            self,
            "CustomResourceLogGroup",
            retention=logs.RetentionDays.ONE_MONTH,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.custom_resource_function = lambda_.Function(
            self,
            "CustomResource",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="custom_resource.lambda_handler",
            code=lambda_.Code.from_asset(
                LAMBDA_ASSET_DIR, exclude=["__pycache__", "*.pyc"]
            ),
            description="CFN Custom resource to create and start the MediaLive input and channel",
            timeout=Duration.minutes(15),
            memory_size=256,
            log_group=self.custom_resource_log_group,
            environment={
                "SOLUTION_IDENTIFIER": config.solution_identifier(self.solution_version),
                "LOG_LEVEL": self.log_level,
            },
            initial_policy=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    resources=[
                        f"arn:{Aws.PARTITION}:medialive:{Aws.REGION}:{Aws.ACCOUNT_ID}:*"
                    ],
                    actions=[
                        "medialive:DescribeInputSecurityGroup",
                        "medialive:createInputSecurityGroup",
                        "medialive:describeInput",
                        "medialive:createInput",
                        "medialive:deleteInput",
                        "medialive:stopChannel",
                        "medialive:createChannel",
                        "medialive:deleteChannel",
                        "medialive:deleteInputSecurityGroup",
                        "medialive:describeChannel",
                        "medialive:startChannel",
                        "medialive:createTags",
                        "medialive:deleteTags",
                    ],
                ),
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    resources=[
                        f"arn:{Aws.PARTITION}:ssm:{Aws.REGION}:{Aws.ACCOUNT_ID}:parameter/*"
                    ],
                    actions=["ssm:PutParameter", "ssm:DeleteParameter"],
                ),
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    resources=[self.medialive_access.role.role_arn],
                    actions=["iam:PassRole"],
                ),
            ],
        )

        self.custom_resource_provider = cr.Provider(
            self,
            "CustomResourceProvider",
            on_event_handler=self.custom_resource_function,
        )

    def _custom_resource(
        self, construct_id: str, properties: Optional[Dict[str, Any]] = None
    ) -> CustomResource:
        """Declare a custom resource dispatched to the handler by name."""
        return CustomResource(
            self,
            construct_id,
            service_token=self.custom_resource_provider.service_token,
            properties={"Resource": construct_id, **(properties or {})},
        )

    def _create_medialive_input(self) -> None:
        """Custom resource creating the MediaLive input and its security group."""
        self.medialive_input = self._custom_resource(
            "MediaLiveInput",
            {
                "StreamName": Aws.STACK_NAME,
                "Type": self.input_type.value_as_string,
                "InputDeviceId": self.input_device_id.value_as_string,
                "Cidr": self.input_cidr.value_as_string,
                "PullUrl": self.pull_url.value_as_string,
                "PullUser": self.pull_user.value_as_string,
                "PullPass": self.pull_pass.value_as_string,
            },
        )

    def _create_medialive_channel(self) -> None:
        """Custom resource creating the MediaLive channel bound to the input and bucket."""
        self.medialive_channel = self._custom_resource(
            "MediaLiveChannel",
            {
                "StreamName": Aws.STACK_NAME,
                "EncodingProfile": self.encoding_profile.value_as_string,
                "Codec": config.CHANNEL_CODEC,
                "Role": self.medialive_access.role.role_arn,
                "InputId": self.medialive_input.get_att_string("Id"),
                "Type": self.input_type.value_as_string,
                "S3Bucket": self.cloudfront_to_s3.s3_bucket.bucket_name,
            },
        )

        # The channel writes to the bucket by name, so the whole storage and
        # delivery composition must exist first
        self.medialive_channel.node.add_dependency(self.cloudfront_to_s3)
        self.medialive_channel.node.add_dependency(self.medialive_access)

    def _create_channel_start(self) -> None:
        self.channel_start_resource = self._custom_resource(
            "MediaLiveChannelStart",
            {
                "ChannelId": self.medialive_channel.get_att_string("ChannelId"),
                "ChannelStart": self.channel_start.value_as_string,
            },
        )

    def _create_anonymous_metric(self) -> None:
        """Installation identifier and the anonymous usage record."""
        self.uuid = self._custom_resource("UUID")

        self.anonymous_metric = self._custom_resource(
            "AnonymousMetric",
            {
                "SolutionId": config.SOLUTION_ID,
                "UUID": self.uuid.get_att_string("UUID"),
                "Version": self.solution_version,
                "Type": self.input_type.value_as_string,
                "Cidr": self.input_cidr.value_as_string,
                "EncodingProfile": self.encoding_profile.value_as_string,
                "ChannelStart": self.channel_start.value_as_string,
                "SendAnonymousMetric": Fn.find_in_map(
                    "AnonymousData", "SendAnonymousData", "Data"
                ),
            },
        )

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs for the operator."""
        bucket_name = self.cloudfront_to_s3.s3_bucket.bucket_name
        domain_name = self.cloudfront_to_s3.cloud_front_web_distribution.distribution_domain_name

        CfnOutput(
            self,
            "LiveStreamUrl",
            value=f"https://{domain_name}/{config.STREAM_PATH}",
            description="CloudFront Live Stream URL",
            export_name=f"{Aws.STACK_NAME}-LiveStreamUrl",
        )

        CfnOutput(
            self,
            "MediaLiveConsole",
            value=f"https://{Aws.REGION}.console.aws.amazon.com/medialive/home?region={Aws.REGION}#!/channels",
            description="MediaLive Channel",
            export_name=f"{Aws.STACK_NAME}-MediaLiveConsole",
        )

        CfnOutput(
            self,
            "LiveStreamBucket",
            value=f"https://{Aws.REGION}.console.aws.amazon.com/s3/buckets/{bucket_name}?region={Aws.REGION}",
            description="Live Stream Destination Bucket",
            export_name=f"{Aws.STACK_NAME}-LiveStreamBucket",
        )

        CfnOutput(
            self,
            "BucketMetrics",
            value=(
                f"https://{Aws.REGION}.console.aws.amazon.com/s3/bucket/{bucket_name}"
                f"/metrics/bucket_metrics?region={Aws.REGION}&tab=request&period=1h"
            ),
            description="Bucket Request Metrics",
            export_name=f"{Aws.STACK_NAME}-BucketMetrics",
        )

        CfnOutput(
            self,
            "MediaLivePushEndpoint",
            value=self.medialive_input.get_att_string("EndPoint"),
            description="The MediaLive Input ingress endpoint for push input types",
            export_name=f"{Aws.STACK_NAME}-MediaLiveEndpoint",
        )

    def _add_nag_suppressions(self) -> None:
        """Document the findings cdk-nag raises on purpose for this stack."""
        NagSuppressions.add_resource_suppressions(
            self.medialive_access,
            [
                {
                    "id": "AwsSolutions-IAM5",
                    "reason": "MediaLive needs object level access in its bucket, Parameter Store "
                    "for pull credentials, ENIs for VPC inputs and its own log groups",
                },
            ],
            apply_to_children=True,
        )

        NagSuppressions.add_resource_suppressions(
            self.custom_resource_function,
            [
                {
                    "id": "AwsSolutions-IAM4",
                    "reason": "AWSLambdaBasicExecutionRole only grants CloudWatch Logs access",
                },
                {
                    "id": "AwsSolutions-IAM5",
                    "reason": "Channel and input ids are generated by MediaLive at deploy time",
                },
                {
                    "id": "AwsSolutions-L1",
                    "reason": "Runtime is pinned to the version the handler is tested against",
                },
            ],
            apply_to_children=True,
        )

        NagSuppressions.add_resource_suppressions(
            self.custom_resource_provider,
            [
                {
                    "id": "AwsSolutions-IAM4",
                    "reason": "Provider framework function uses AWSLambdaBasicExecutionRole",
                },
                {
                    "id": "AwsSolutions-IAM5",
                    "reason": "Provider framework invokes all versions of the handler function",
                },
                {
                    "id": "AwsSolutions-L1",
                    "reason": "Provider framework runtime is managed by aws-cdk-lib",
                },
            ],
            apply_to_children=True,
        )

        NagSuppressions.add_resource_suppressions(
            self.cloudfront_to_s3.cloud_front_web_distribution,
            [
                {
                    "id": "AwsSolutions-CFR1",
                    "reason": "The live stream is public, no geo restriction",
                },
                {
                    "id": "AwsSolutions-CFR2",
                    "reason": "WAF integration is left to the operator",
                },
                {
                    "id": "AwsSolutions-CFR4",
                    "reason": "Default CloudFront certificate, no custom domain",
                },
            ],
        )

        NagSuppressions.add_resource_suppressions(
            self.cloudfront_to_s3.s3_logging_bucket,
            [
                {
                    "id": "AwsSolutions-S1",
                    "reason": "The access log bucket is itself the server access log destination",
                },
            ],
        )

    def _add_tags(self) -> None:
        Tags.of(self).add("SolutionId", config.SOLUTION_ID)
        Tags.of(self).add("Project", "LiveStreaming")
        Tags.of(self).add("ManagedBy", "CDK")
