"""
AWS Lambda handler for CloudFront log objects

Accepts either S3 event notifications invoking the function directly or SQS
records wrapping them. The log group is derived from the object key and all
records go to one stream (LAMBDA_LOG_STREAM).
"""

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from ..clients import AwsClients
from ..config import Settings
from ..exceptions import NonRecoverableError
from ..models.notification import S3EventRecord, parse_notification
from ..models.resources import LogDestination
from ..services.delivery import deliver_log_object
from ..utils.logger import setup_logging

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def get_clients(region: str) -> AwsClients:
    """Clients are reused across warm invocations"""
    return AwsClients.create(region)


def process_s3_record(record: S3EventRecord, clients: AwsClients, settings: Settings) -> int:
    destination = LogDestination(stream=settings.lambda_log_stream)
    return deliver_log_object(
        clients.s3,
        clients.logs,
        record.bucket,
        record.key,
        destination,
        settings=settings
    )


def process_sqs_record(sqs_record: Dict[str, Any], clients: AwsClients, settings: Settings) -> int:
    """
    Process a single SQS record containing an S3 event notification

    Returns:
        Number of log records pushed
    """
    notification = parse_notification(sqs_record['body'])
    pushed = 0
    for record in notification.Records:
        pushed += process_s3_record(record, clients, settings)
    return pushed


def lambda_handler(event: Dict[str, Any], context, clients: Optional[AwsClients] = None) -> Dict[str, Any]:
    """
    AWS Lambda handler

    SQS records are reported through batchItemFailures so failed messages are
    retried by SQS; non-recoverable failures are not retried. For direct S3
    invocations any failure is raised.
    """
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    if clients is None:
        clients = get_clients(settings.region)

    records = event.get('Records', [])
    logger.info(f"Processing {len(records)} records")

    batch_item_failures = []
    pushed = 0
    for record in records:
        if 'body' in record:
            message_id = record.get('messageId', 'unknown')
            try:
                pushed += process_sqs_record(record, clients, settings)
            except NonRecoverableError as e:
                logger.warning(f"Non-recoverable error processing record {message_id}: {str(e)}. Message will be removed from queue.")
            except Exception as e:
                logger.error(f"Recoverable error processing record {message_id}: {str(e)}. Message will be retried.", exc_info=True)
                if 'messageId' in record:
                    batch_item_failures.append({'itemIdentifier': record['messageId']})
        else:
            s3_record = S3EventRecord.model_validate(record)
            logger.info(f"[{record.get('eventSource')} - {record.get('eventTime')}] Bucket = {s3_record.bucket}, Key = {s3_record.key}")
            pushed += process_s3_record(s3_record, clients, settings)

    logger.info(f"Processing complete. Pushed {pushed} log events, {len(batch_item_failures)} failed message(s)")

    return {
        'batchItemFailures': batch_item_failures
    }
