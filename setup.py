"""
Setup configuration for Live Streaming on AWS with Amazon S3.

This package provides the AWS CDK Python application that synthesizes the
CloudFormation template for a live streaming pipeline built on AWS Elemental
MediaLive, Amazon S3 and Amazon CloudFront.
"""

from setuptools import setup, find_packages

# Read long description from README
try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = __doc__

# Read requirements from requirements.txt
try:
    with open("requirements.txt", "r", encoding="utf-8") as fh:
        requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]
except FileNotFoundError:
    requirements = [
        "aws-cdk-lib>=2.156.0,<3.0.0",
        "constructs>=10.0.0,<11.0.0",
        "aws-solutions-constructs.aws-cloudfront-s3>=2.74.0,<3.0.0",
        "cdk-nag>=2.27.0,<3.0.0",
        "boto3>=1.28.0",
        "urllib3>=1.26.0",
    ]

setup(
    name="live-streaming-on-aws-with-amazon-s3",
    version="2.1.0",
    description="AWS CDK Python application for Live Streaming on AWS with Amazon S3",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["app"],
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Systems Administration",
        "Topic :: Multimedia :: Video :: Conversion",
        "Typing :: Typed",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
        "typing": [
            "boto3-stubs[medialive,ssm]>=1.28.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "synth-live-streaming=app:main",
        ],
    },
    keywords=[
        "aws",
        "cdk",
        "live-streaming",
        "medialive",
        "cloudfront",
        "s3",
        "hls",
    ],
    include_package_data=True,
    zip_safe=False,
)
