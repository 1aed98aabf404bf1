"""S3 client factory.

Creates boto3 S3 clients configured with the endpoint, credentials, region,
and addressing style from a StoreConfig.
"""

import boto3
from botocore.client import Config

from slice_uploader.models import StoreConfig


def build_s3_client(config: StoreConfig, max_pool_connections: int = 10):
    """Build a boto3 S3 client for the given store configuration.

    Args:
        config: Store configuration. Unset fields are left to boto3's own
               resolution (environment, shared config, instance metadata).
        max_pool_connections: Size of the HTTP connection pool; should match
               the number of threads sharing the client.

    Returns:
        A boto3 S3 client.
    """
    boto_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": config.addressing_style},
        max_pool_connections=max_pool_connections,
    )

    kwargs = {}
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    if config.region_name:
        kwargs["region_name"] = config.region_name
    if config.aws_access_key_id:
        kwargs["aws_access_key_id"] = config.aws_access_key_id
        kwargs["aws_secret_access_key"] = config.aws_secret_access_key

    return boto3.client("s3", config=boto_config, **kwargs)
