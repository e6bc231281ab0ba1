"""
Delivery of one S3 log object to CloudWatch Logs
"""

import logging
from typing import Callable, Optional, Union

from ..config import Settings
from ..models.resources import LogDestination
from ..utils.logger import ContextLoggerAdapter
from ..utils.validation import byte_count_binary
from .parser import AccessLogParser, decompress
from .pusher import BatchLogPusher

default_logger = logging.getLogger(__name__)


def download_log_object(s3_client, bucket: str, key: str) -> bytes:
    """Download a log object and return its decompressed content"""
    response = s3_client.get_object(Bucket=bucket, Key=key)
    content = response['Body'].read()
    default_logger.debug(f"Downloaded s3://{bucket}/{key}: {byte_count_binary(len(content))} (compressed)")
    return decompress(content, key)


def deliver_log_object(
    s3_client,
    logs_client,
    bucket: str,
    key: str,
    destination: LogDestination,
    settings: Optional[Settings] = None,
    pusher_factory: Callable[..., BatchLogPusher] = BatchLogPusher,
    logger: Optional[Union[logging.Logger, ContextLoggerAdapter]] = None
) -> int:
    """
    Download, parse and push one log object

    The destination group is derived from the object key when the destination
    has none. The pusher is created for this object only and flushed once all
    records have been added.

    Returns:
        Number of records pushed
    """
    settings = settings or Settings()
    logger = logger or default_logger

    logger.info(f"fetching from s3://{bucket}/{key}")
    content = download_log_object(s3_client, bucket, key)
    logger.info(f"Fetched {byte_count_binary(len(content))} (decompressed) from s3://{bucket}/{key}")

    destination = destination.resolve(key)
    pusher = pusher_factory(
        logs_client,
        destination.group,
        destination.stream,
        batch_size=settings.batch_size,
        max_attempts=settings.retry_attempts
    )
    pusher.ensure_destination()

    parser = AccessLogParser(content)
    count = 0
    for record in parser:
        pusher.add(record)
        count += 1
    pusher.flush()

    if parser.errors:
        logger.warning(f"{len(parser.errors)} line(s) had an unparsable timestamp, used the current time")
    logger.info(f"Pushed {count} records to {destination.group}/{destination.stream}")
    return count
