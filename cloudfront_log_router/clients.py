"""
AWS client construction
"""

import logging
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

CLIENT_CONFIG = Config(
    retries={'max_attempts': 5, 'mode': 'standard'},
    tcp_keepalive=True,
    max_pool_connections=50,
)


@dataclass(frozen=True)
class AwsClients:
    """The AWS clients used by the router, built from one session"""
    cloudfront: Any
    s3: Any
    sqs: Any
    logs: Any

    @classmethod
    def create(cls, region: str) -> 'AwsClients':
        """
        Build all clients for a region

        Raises:
            botocore.exceptions.BotoCoreError: If the session cannot be established
        """
        session = boto3.Session(region_name=region)
        logger.debug(f"Creating AWS clients in {region}")
        return cls(
            cloudfront=session.client('cloudfront', config=CLIENT_CONFIG),
            s3=session.client('s3', config=CLIENT_CONFIG),
            sqs=session.client('sqs', config=CLIENT_CONFIG),
            logs=session.client('logs', config=CLIENT_CONFIG),
        )
