"""
Batching CloudWatch Logs pusher with sequence token handling
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from botocore.exceptions import ClientError

from ..exceptions import DestinationError, SequenceTokenRetryError
from ..models.records import LogRecord
from .parser import sort_records

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_ATTEMPTS = 3

# Errors recovered by refreshing the sequence token and resending the batch
SEQUENCE_TOKEN_ERRORS = ('InvalidSequenceTokenException', 'DataAlreadyAcceptedException')


@dataclass
class PusherState:
    """
    Mutable state of one pusher, guarded by the pusher lock.

    events and payload_bytes are cleared only after a successful append;
    sequence_token is replaced after every successful append and refreshed
    after a rejected one.
    """
    events: List[LogRecord] = field(default_factory=list)
    payload_bytes: int = 0
    sequence_token: Optional[str] = None
    flush_count: int = 0

    def append(self, record: LogRecord) -> None:
        self.events.append(record)
        self.payload_bytes += record.size

    def clear(self) -> None:
        self.events = []
        self.payload_bytes = 0


class BatchLogPusher:
    """
    Buffers records for one log group/stream and appends them in batches.

    add() and flush() share one lock, so appends to the stream are serialized
    and each append carries the token returned by the previous one.
    """

    def __init__(
        self,
        logs_client,
        group: str,
        stream: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS
    ):
        if batch_size < 1:
            raise ValueError('batch_size must be at least 1')
        if max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')
        self.logs_client = logs_client
        self.group = group
        self.stream = stream
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self._state = PusherState()
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        return len(self._state.events)

    @property
    def pending_bytes(self) -> int:
        return self._state.payload_bytes

    @property
    def sequence_token(self) -> Optional[str]:
        return self._state.sequence_token

    @property
    def flush_count(self) -> int:
        return self._state.flush_count

    def ensure_destination(self) -> None:
        """
        Create the log group and then the log stream; existing ones are fine

        Raises:
            DestinationError: If either cannot be created
        """
        try:
            self.logs_client.create_log_group(logGroupName=self.group)
            logger.info(f"Created log group: {self.group}")
        except ClientError as e:
            if e.response['Error']['Code'] != 'ResourceAlreadyExistsException':
                raise DestinationError(f"failed to create log group {self.group}: {str(e)}") from e
            logger.debug(f"Log group {self.group} already exists")

        try:
            self.logs_client.create_log_stream(logGroupName=self.group, logStreamName=self.stream)
            logger.info(f"Created log stream: {self.stream} in group: {self.group}")
        except ClientError as e:
            if e.response['Error']['Code'] != 'ResourceAlreadyExistsException':
                raise DestinationError(
                    f"failed to create log stream {self.stream} for group {self.group}: {str(e)}"
                ) from e
            logger.debug(f"Log stream {self.stream} already exists in group {self.group}")

    def add(self, record: LogRecord) -> None:
        """
        Buffer a record, first flushing when the batch is already full

        If that flush fails the error propagates and the record is not buffered.
        """
        with self._lock:
            if len(self._state.events) >= self.batch_size:
                self._flush_locked()
            self._state.append(record)

    def flush(self) -> None:
        """
        Append all buffered records

        Raises:
            SequenceTokenRetryError: If the retry limit is reached; the batch is kept
            ClientError: For any other PutLogEvents failure; the batch is kept
        """
        with self._lock:
            self._flush_locked()

    def _flush_locked(self) -> None:
        """Append buffered records. Must be called with self._lock held."""
        state = self._state
        if not state.events:
            return

        log_events = [record.to_event() for record in sort_records(state.events)]
        logger.debug(f"Sending batch of {len(log_events)} events ({state.payload_bytes} bytes) to {self.group}/{self.stream}")

        state.sequence_token = self._put_log_events(log_events, state.sequence_token)
        state.flush_count += 1
        state.clear()

    def _put_log_events(self, log_events: List[dict], sequence_token: Optional[str]) -> Optional[str]:
        """Send one batch, refreshing the sequence token on ordering conflicts"""
        for attempt in range(1, self.max_attempts + 1):
            request = {
                'logGroupName': self.group,
                'logStreamName': self.stream,
                'logEvents': log_events,
            }
            if sequence_token:
                request['sequenceToken'] = sequence_token

            try:
                response = self.logs_client.put_log_events(**request)
            except ClientError as e:
                error_code = e.response['Error']['Code']
                if error_code not in SEQUENCE_TOKEN_ERRORS:
                    logger.error(f"CloudWatch API error: {error_code}: {e}")
                    raise

                logger.warning(
                    f"{error_code} for {self.group}/{self.stream}, "
                    f"refreshing sequence token (attempt {attempt}/{self.max_attempts})"
                )
                if attempt == self.max_attempts:
                    raise SequenceTokenRetryError(
                        f"exceeded retry limit of {self.max_attempts} when appending to {self.group}/{self.stream}",
                        attempts=attempt
                    ) from e
                sequence_token = _expected_sequence_token(e) or self.describe_sequence_token()
                continue

            _log_rejected_events(response, len(log_events))
            logger.info(f"pushed {len(log_events)} lines to {self.group}/{self.stream}")
            return response.get('nextSequenceToken')

    def describe_sequence_token(self) -> Optional[str]:
        """Fetch the stream's current upload sequence token"""
        response = self.logs_client.describe_log_streams(
            logGroupName=self.group,
            logStreamNamePrefix=self.stream
        )
        for stream in response.get('logStreams', []):
            if stream.get('logStreamName') == self.stream:
                return stream.get('uploadSequenceToken')
        return None


def _expected_sequence_token(error: ClientError) -> Optional[str]:
    # botocore places modelled error fields at the top level of the response
    return error.response.get('expectedSequenceToken') or error.response['Error'].get('expectedSequenceToken')


def _log_rejected_events(response: dict, batch_length: int) -> None:
    rejected_info = response.get('rejectedLogEventsInfo')
    if not rejected_info:
        return
    if rejected_info.get('tooNewLogEventStartIndex') is not None:
        logger.warning(f"{batch_length - rejected_info['tooNewLogEventStartIndex']} events were too new: {rejected_info}")
    if rejected_info.get('tooOldLogEventEndIndex') is not None:
        logger.warning(f"{rejected_info['tooOldLogEventEndIndex'] + 1} events were too old: {rejected_info}")
    if rejected_info.get('expiredLogEventEndIndex') is not None:
        logger.warning(f"{rejected_info['expiredLogEventEndIndex'] + 1} events were expired: {rejected_info}")
