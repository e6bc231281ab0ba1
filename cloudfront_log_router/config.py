"""
Runtime configuration loaded from environment variables
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .utils.logger import VERBOSITY_LEVELS

DEFAULT_REGION = 'ap-southeast-2'
DEFAULT_TAG_NAME_LOG_GROUP = 'edge.skpr.io/loggroup'
DEFAULT_TAG_NAME_LOG_STREAM = 'edge.skpr.io/logstream'
DEFAULT_LOG_STREAM_PREFIX = 'cloudfront'


class Settings(BaseModel):
    """Settings shared by discovery, the queue watchers and the Lambda handler"""
    region: str = Field(default=DEFAULT_REGION, description="AWS region for all clients")
    tag_name_log_group: str = Field(default=DEFAULT_TAG_NAME_LOG_GROUP, min_length=1, description="Distribution tag holding the log group")
    tag_name_log_stream: str = Field(default=DEFAULT_TAG_NAME_LOG_STREAM, min_length=1, description="Distribution tag holding the log stream")
    log_stream_prefix: str = Field(default=DEFAULT_LOG_STREAM_PREFIX, min_length=1, description="Prefix for default log stream names")
    batch_size: int = Field(default=1000, ge=1, le=10000, description="Events buffered before a PutLogEvents call")
    retry_attempts: int = Field(default=3, ge=1, description="PutLogEvents attempts on sequence token conflicts")
    max_workers: int = Field(default=10, ge=1, description="Concurrent message workers")
    max_messages: int = Field(default=10, ge=1, le=10, description="Messages per ReceiveMessage call")
    wait_time_seconds: int = Field(default=20, ge=0, le=20, description="Long polling wait time")
    poll_backoff_max: float = Field(default=30.0, ge=0, description="Upper bound for the backoff after a failed poll")
    delete_failed_messages: bool = Field(default=True, description="Delete messages whose log object failed to process")
    lambda_log_stream: str = Field(default=DEFAULT_LOG_STREAM_PREFIX, min_length=1, description="Log stream used in Lambda mode")
    log_level: str = Field(default='info', description="Logging verbosity")

    @field_validator('region')
    @classmethod
    def validate_region(cls, v):
        """Validate AWS region format"""
        if not v or not v.replace('-', '').isalnum():
            raise ValueError('region must be a valid AWS region')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate verbosity name"""
        if v.lower() not in VERBOSITY_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(VERBOSITY_LEVELS)}")
        return v.lower()

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> 'Settings':
        """
        Build settings from environment variables

        Args:
            environ: Mapping to read instead of os.environ
            **overrides: Values taking precedence over the environment (None is ignored)

        Returns:
            Validated settings
        """
        if environ is None:
            environ = os.environ

        values = {}
        for field, env_var in ENV_VARS.items():
            if env_var in environ:
                values[field] = environ[env_var]
        values.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**values)


ENV_VARS = {
    'region': 'AWS_REGION',
    'tag_name_log_group': 'TAG_NAME_LOG_GROUP',
    'tag_name_log_stream': 'TAG_NAME_LOG_STREAM',
    'log_stream_prefix': 'LOG_STREAM_PREFIX',
    'batch_size': 'MAX_BATCH_SIZE',
    'retry_attempts': 'RETRY_ATTEMPTS',
    'max_workers': 'MAX_WORKERS',
    'max_messages': 'MAX_MESSAGES',
    'wait_time_seconds': 'WAIT_TIME_SECONDS',
    'poll_backoff_max': 'POLL_BACKOFF_MAX',
    'delete_failed_messages': 'DELETE_FAILED_MESSAGES',
    'lambda_log_stream': 'LAMBDA_LOG_STREAM',
    'log_level': 'LOG_LEVEL',
}
