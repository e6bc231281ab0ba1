"""
Parsed access log records
"""

from dataclasses import dataclass
from datetime import datetime

# CloudWatch Logs accounts 26 bytes of framing per event on top of the message
EVENT_OVERHEAD_BYTES = 26


@dataclass(frozen=True)
class LogRecord:
    """One access log line: timestamp plus the line without its date/time prefix"""
    timestamp: datetime
    message: str

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp.timestamp() * 1000)

    @property
    def size(self) -> int:
        """Approximate PutLogEvents payload size of this record"""
        return len(self.message.encode('utf-8')) + EVENT_OVERHEAD_BYTES

    def to_event(self) -> dict:
        """Convert to the CloudWatch Logs InputLogEvent shape"""
        return {'timestamp': self.timestamp_ms, 'message': self.message}


@dataclass(frozen=True)
class LineError:
    """A line whose timestamp could not be parsed"""
    line_number: int
    line: str
    reason: str
