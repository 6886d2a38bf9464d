"""CDK constructs for Live Streaming on AWS with Amazon S3."""
