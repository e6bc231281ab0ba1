"""
Discovery of CloudFront distributions configured for log shipping
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..config import DEFAULT_LOG_STREAM_PREFIX, DEFAULT_TAG_NAME_LOG_GROUP, DEFAULT_TAG_NAME_LOG_STREAM
from ..exceptions import QueueResolutionError
from ..models.resources import Endpoint, LogDestination, QueueBinding
from ..utils.logger import get_logger
from ..utils.validation import strip_bucket_suffix

logger = logging.getLogger(__name__)


class DistributionDiscovery:
    """
    Finds tagged CloudFront distributions and resolves the SQS queue which
    receives object-created notifications from each distribution's log bucket.
    """

    def __init__(
        self,
        cloudfront_client,
        s3_client,
        tag_name_log_group: str = DEFAULT_TAG_NAME_LOG_GROUP,
        tag_name_log_stream: str = DEFAULT_TAG_NAME_LOG_STREAM,
        log_stream_prefix: str = DEFAULT_LOG_STREAM_PREFIX
    ):
        self.cloudfront_client = cloudfront_client
        self.s3_client = s3_client
        self.tag_name_log_group = tag_name_log_group
        self.tag_name_log_stream = tag_name_log_stream
        self.log_stream_prefix = log_stream_prefix

    @property
    def required_tags(self) -> List[str]:
        return [self.tag_name_log_group, self.tag_name_log_stream]

    def list_distributions(self) -> Iterator[Dict[str, Any]]:
        """Yield every distribution summary, following pagination to the end"""
        paginator = self.cloudfront_client.get_paginator('list_distributions')
        for page in paginator.paginate():
            for item in page.get('DistributionList', {}).get('Items', []) or []:
                yield item

    def get_tags(self, distribution_arn: str) -> Dict[str, str]:
        response = self.cloudfront_client.list_tags_for_resource(Resource=distribution_arn)
        items = response.get('Tags', {}).get('Items', []) or []
        return {item['Key']: item.get('Value', '') for item in items}

    def find_tagged_distributions(self, required_tags: Optional[Iterable[str]] = None) -> List[Endpoint]:
        """
        Return the distributions carrying at least one of the required tags

        Distributions whose tags cannot be fetched are skipped.
        """
        required = set(required_tags if required_tags is not None else self.required_tags)
        endpoints = []

        for summary in self.list_distributions():
            distribution_id = summary['Id']
            try:
                tags = self.get_tags(summary['ARN'])
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Skipping distribution {distribution_id}: failed to list tags: {str(e)}")
                continue

            if not required.intersection(tags):
                logger.debug(f"Distribution {distribution_id} has none of the tags {sorted(required)}")
                continue

            endpoints.append(Endpoint(id=distribution_id, arn=summary['ARN'], tags=tags))

        logger.info(f"Found {len(endpoints)} candidate distribution(s)")
        return endpoints

    def resolve_destination(self, endpoint: Endpoint) -> LogDestination:
        """
        Build the log destination from the distribution tags

        A missing stream tag falls back to "<prefix>-<distribution id>". A missing
        group tag leaves the group unset; it is then derived per log object.
        """
        group = endpoint.tags.get(self.tag_name_log_group) or None
        stream = endpoint.tags.get(self.tag_name_log_stream)
        if not stream:
            stream = f"{self.log_stream_prefix}-{endpoint.id}"
        return LogDestination(group=group, stream=stream)

    def get_log_bucket(self, distribution_id: str) -> str:
        """
        Find the bucket used to store logs for a distribution

        Raises:
            QueueResolutionError: If logging is not configured
        """
        response = self.cloudfront_client.get_distribution_config(Id=distribution_id)
        logging_config = response.get('DistributionConfig', {}).get('Logging', {})
        bucket = logging_config.get('Bucket')
        if not bucket:
            raise QueueResolutionError(f"Distribution {distribution_id} has no logging bucket configured")
        return strip_bucket_suffix(bucket)

    def get_notification_queue(self, bucket: str) -> str:
        """
        Find the SQS queue receiving event notifications for a bucket

        Only the first configured queue is used.

        Raises:
            QueueResolutionError: If no notification queue is configured
        """
        response = self.s3_client.get_bucket_notification_configuration(Bucket=bucket)
        queues = response.get('QueueConfigurations', []) or []
        if not queues:
            raise QueueResolutionError(f"No notification queues configured for {bucket}")
        if len(queues) > 1:
            logger.warning(f"Bucket {bucket} has {len(queues)} notification queues, using the first")
        return queues[0]['QueueArn']

    def get_distribution_log_queue(self, distribution_id: str) -> str:
        bucket = self.get_log_bucket(distribution_id)
        return self.get_notification_queue(bucket)

    def discover(self, required_tags: Optional[Iterable[str]] = None) -> List[QueueBinding]:
        """
        Resolve a queue binding for every tagged distribution

        A distribution whose queue cannot be resolved is logged and left out;
        it never aborts the discovery pass.
        """
        bindings = []

        for endpoint in self.find_tagged_distributions(required_tags):
            dist_logger = get_logger(__name__, distribution=endpoint.id)
            dist_logger.info("candidate distribution found")
            for key, value in endpoint.tags.items():
                dist_logger.debug(f"tag found '{key}': '{value}'")

            destination = self.resolve_destination(endpoint)
            if destination.group is None:
                dist_logger.info("no log group tag, deriving log group from object keys")

            try:
                queue_arn = self.get_distribution_log_queue(endpoint.id)
            except QueueResolutionError as e:
                dist_logger.error(f"couldn't find sqs queue for distribution logs: {str(e)}")
                continue
            except (ClientError, BotoCoreError) as e:
                dist_logger.error(f"failed to resolve sqs queue for distribution logs: {str(e)}")
                continue

            dist_logger.debug(f"sqs queue for logs is {queue_arn}")
            bindings.append(QueueBinding(endpoint=endpoint, queue_arn=queue_arn, destination=destination))

        return bindings


def describe(endpoints: Iterable[Endpoint]) -> List[Dict[str, Any]]:
    """Render endpoints as the discover command prints them"""
    return [{'id': endpoint.id, 'tags': dict(endpoint.tags)} for endpoint in endpoints]
