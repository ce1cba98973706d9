from __future__ import annotations
import boto3
from botocore.config import Config
from .config import Settings, settings as default_settings

def _boto_config(connect_timeout: float, read_timeout: float, max_attempts: int, **extra) -> Config:
    return Config(
        retries={"max_attempts": max_attempts, "mode": "standard"},
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        **extra,
    )

def s3_client(settings: Settings = default_settings):
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        config=_boto_config(
            settings.remote_connect_timeout,
            settings.remote_read_timeout,
            settings.aws_max_attempts,
            signature_version="s3v4",
            s3={"addressing_style": "virtual"},
        ),
    )

def dynamodb_resource(settings: Settings = default_settings):
    return boto3.resource(
        "dynamodb",
        region_name=settings.aws_region,
        config=_boto_config(
            settings.db_connect_timeout,
            settings.db_read_timeout,
            settings.aws_max_attempts,
        ),
    )
