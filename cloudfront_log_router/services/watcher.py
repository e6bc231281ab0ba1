"""
SQS queue watcher dispatching log objects to worker threads
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Tuple

from botocore.exceptions import ClientError

from ..config import Settings
from ..exceptions import NonRecoverableError, QueueResolutionError
from ..models.notification import parse_notification
from ..models.resources import QueueBinding
from ..utils.logger import ContextLoggerAdapter, get_logger
from .delivery import deliver_log_object
from .pusher import BatchLogPusher

# Delay before the first retry after a failed poll
INITIAL_POLL_BACKOFF = 1.0


def parse_queue_arn(queue_arn: str) -> Tuple[str, str, str]:
    """
    Split an SQS queue ARN into region, account and queue name

    Raises:
        QueueResolutionError: If the ARN is malformed
    """
    parts = queue_arn.split(':', 5)
    if len(parts) != 6 or parts[0] != 'arn' or parts[2] != 'sqs' or not parts[5]:
        raise QueueResolutionError(f"Invalid SQS queue ARN: {queue_arn}")
    return parts[3], parts[4], parts[5]


def next_backoff(current: float, maximum: float) -> float:
    """Capped exponential backoff: 1s, 2s, 4s, ... up to maximum"""
    if current <= 0:
        return min(INITIAL_POLL_BACKOFF, maximum)
    return min(current * 2, maximum)


class WorkTracker:
    """Thread safe count of outstanding work items that can be waited on"""

    def __init__(self):
        self._count = 0
        self._condition = threading.Condition()

    @property
    def count(self) -> int:
        with self._condition:
            return self._count

    def add(self, n: int = 1) -> None:
        with self._condition:
            self._count += n

    def done(self) -> None:
        with self._condition:
            if self._count <= 0:
                raise ValueError('done() called more times than add()')
            self._count -= 1
            if self._count == 0:
                self._condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no work is outstanding; returns False on timeout"""
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout=timeout)


class QueueWatcher:
    """
    Long-polls the notification queue of one distribution.

    Every received message is handed to a worker thread which downloads the
    log object, parses it and pushes the records to CloudWatch Logs. The
    number of concurrently running workers is capped by settings.max_workers;
    when all workers are busy the poll loop waits for one to finish.
    """

    def __init__(
        self,
        binding: QueueBinding,
        sqs_client,
        s3_client,
        logs_client,
        settings: Optional[Settings] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        pusher_factory: Callable[..., BatchLogPusher] = BatchLogPusher
    ):
        self.binding = binding
        self.sqs_client = sqs_client
        self.s3_client = s3_client
        self.logs_client = logs_client
        self.settings = settings or Settings()
        self.pusher_factory = pusher_factory
        self.tracker = WorkTracker()
        self.queue_url: Optional[str] = None
        self.logger = get_logger(__name__, distribution=binding.endpoint.id)

        self._executor = executor
        self._owns_executor = executor is None
        self._slots = threading.BoundedSemaphore(self.settings.max_workers)

    def resolve_queue_url(self) -> str:
        """
        Look up the queue URL from the queue ARN

        Raises:
            QueueResolutionError: If the ARN is malformed or the queue cannot be found
        """
        _, account, name = parse_queue_arn(self.binding.queue_arn)
        try:
            response = self.sqs_client.get_queue_url(QueueName=name, QueueOwnerAWSAccountId=account)
        except ClientError as e:
            raise QueueResolutionError(f"Failed to get queue url for {self.binding.queue_arn}: {str(e)}") from e

        self.queue_url = response['QueueUrl']
        self.logger.debug(f"queue url is {self.queue_url}")
        return self.queue_url

    def watch(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Poll until stop_event is set, then wait for outstanding workers

        Raises:
            QueueResolutionError: If the queue URL cannot be resolved
        """
        if stop_event is None:
            stop_event = threading.Event()
        if self.queue_url is None:
            self.resolve_queue_url()
        self._ensure_executor()

        self.logger.info(f"Starting SQS polling for queue: {self.queue_url}")
        backoff = 0.0
        try:
            while not stop_event.is_set():
                try:
                    self.poll_once()
                    backoff = 0.0
                except Exception as e:
                    backoff = next_backoff(backoff, self.settings.poll_backoff_max)
                    self.logger.error(f"Error in SQS polling: {str(e)}. Retrying in {backoff:.0f}s")
                    stop_event.wait(backoff)
        finally:
            self.logger.info(f"Stopping, waiting for {self.tracker.count} outstanding worker(s)")
            self.tracker.wait()
            if self._owns_executor:
                self._executor.shutdown(wait=True)
                self._executor = None
            self.logger.debug("watch loop complete")

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.settings.max_workers,
                thread_name_prefix=f"worker-{self.binding.endpoint.id}"
            )
        return self._executor

    def poll_once(self) -> int:
        """
        Receive one batch of messages and dispatch a worker per message

        Returns:
            Number of messages dispatched
        """
        self.logger.debug("polling for messages...")
        response = self.sqs_client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=self.settings.max_messages,
            WaitTimeSeconds=self.settings.wait_time_seconds
        )

        messages = response.get('Messages', [])
        if not messages:
            self.logger.debug("no messages in queue")
            return 0

        self.logger.info(f"Received {len(messages)} messages from SQS")
        executor = self._ensure_executor()
        for message in messages:
            self._slots.acquire()
            self.tracker.add()
            try:
                executor.submit(self._run_worker, message)
            except RuntimeError:
                self._slots.release()
                self.tracker.done()
                raise
        return len(messages)

    def _run_worker(self, message: Dict[str, Any]) -> None:
        try:
            self.process_message(message)
        finally:
            self._slots.release()
            self.tracker.done()

    def process_message(self, message: Dict[str, Any]) -> bool:
        """
        Process every S3 record in one queue message, then delete the message

        Failed messages are deleted as well unless settings.delete_failed_messages
        is off, so a permanently broken object is not redelivered forever.

        Returns:
            True if every record was delivered
        """
        message_id = message.get('MessageId', 'unknown')
        msg_logger = self.logger.with_keys(message=message_id)
        success = False

        try:
            notification = parse_notification(message['Body'])
            if not notification.Records:
                msg_logger.info("message carries no S3 records")
            for record in notification.Records:
                self.process_object(record.bucket, record.key, msg_logger)
            success = True
        except NonRecoverableError as e:
            msg_logger.warning(f"Non-recoverable error processing message: {str(e)}")
        except Exception as e:
            msg_logger.error(f"Error processing message: {str(e)}", exc_info=True)

        if success or self.settings.delete_failed_messages:
            self.delete_message(message, msg_logger)
        else:
            msg_logger.warning("leaving message on the queue for redelivery")

        msg_logger.debug("log worker complete")
        return success

    def process_object(self, bucket: str, key: str, msg_logger: Optional[ContextLoggerAdapter] = None) -> int:
        """Deliver one log object to this distribution's destination"""
        return deliver_log_object(
            self.s3_client,
            self.logs_client,
            bucket,
            key,
            self.binding.destination,
            settings=self.settings,
            pusher_factory=self.pusher_factory,
            logger=msg_logger or self.logger
        )

    def delete_message(self, message: Dict[str, Any], msg_logger: Optional[ContextLoggerAdapter] = None) -> bool:
        msg_logger = msg_logger or self.logger
        msg_logger.debug("deleting message from queue")
        try:
            self.sqs_client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=message['ReceiptHandle'])
            return True
        except ClientError as e:
            msg_logger.error(f"Failed to delete message: {str(e)}")
            return False
