"""
IAM role assumed by AWS Elemental MediaLive.

The policy is scoped to what a single MediaLive channel writing to one S3
bucket needs: object access on that bucket, Parameter Store for pull input
credentials, MediaConnect managed outputs, ENIs for VPC inputs and logging.
"""

from aws_cdk import Aws, aws_iam as iam, aws_s3 as s3
from constructs import Construct


class MediaLiveAccess(Construct):
    """MediaLive service role and its least-privilege policy."""

    def __init__(self, scope: Construct, construct_id: str, bucket: s3.IBucket) -> None:
        super().__init__(scope, construct_id)

        self.role = iam.Role(
            self,
            "MediaLiveRole",
            assumed_by=iam.ServicePrincipal("medialive.amazonaws.com"),
            description="Role assumed by MediaLive to write the live stream to S3",
        )

        self.policy = iam.Policy(
            self,
            "MediaLivePolicy",
            statements=self.policy_statements(bucket.bucket_name),
        )
        self.policy.attach_to_role(self.role)

    @staticmethod
    def policy_statements(bucket_name: str) -> list:
        """Build the five statements of the MediaLive policy."""
        return [
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                resources=[f"arn:aws:s3:::{bucket_name}/*"],
                actions=[
                    "s3:ListBucket",
                    "s3:PutObject",
                    "s3:GetObject",
                    "s3:DeleteObject",
                ],
                conditions={
                    "StringEquals": {"s3:ResourceAccount": Aws.ACCOUNT_ID},
                },
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                resources=[
                    f"arn:{Aws.PARTITION}:ssm:{Aws.REGION}:{Aws.ACCOUNT_ID}:parameter/*"
                ],
                actions=[
                    "ssm:DescribeParameters",
                    "ssm:GetParameter",
                    "ssm:GetParameters",
                    "ssm:PutParameter",
                ],
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                resources=[
                    f"arn:{Aws.PARTITION}:mediaconnect:{Aws.REGION}:{Aws.ACCOUNT_ID}:*"
                ],
                actions=[
                    "mediaconnect:ManagedDescribeFlow",
                    "mediaconnect:ManagedAddOutput",
                    "mediaconnect:ManagedRemoveOutput",
                ],
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                resources=[f"arn:{Aws.PARTITION}:ec2:{Aws.REGION}:{Aws.ACCOUNT_ID}:*"],
                actions=[
                    "ec2:describeSubnets",
                    "ec2:describeNetworkInterfaces",
                    "ec2:createNetworkInterface",
                    "ec2:createNetworkInterfacePermission",
                    "ec2:deleteNetworkInterface",
                    "ec2:deleteNetworkInterfacePermission",
                    "ec2:describeSecurityGroups",
                ],
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                resources=[f"arn:{Aws.PARTITION}:logs:*:*:*"],
                actions=[
                    "logs:CreateLogGroup",
                    "logs:CreateLogStream",
                    "logs:PutLogEvents",
                    "logs:DescribeLogStreams",
                    "logs:DescribeLogGroups",
                ],
            ),
        ]
