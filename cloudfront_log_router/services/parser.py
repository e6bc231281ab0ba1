"""
CloudFront access log parser

Access log lines are tab delimited and start with the request date and time:

    #Version: 1.0
    #Fields: date time x-edge-location sc-bytes c-ip cs-method cs(Host) cs-uri-stem sc-status ...
    2014-05-23	01:13:11	FRA2	182	192.0.2.10	GET	d111111abcdef8.cloudfront.net	/view/my/file.html	200 ...

Each data line becomes one LogRecord whose timestamp comes from the first two
fields and whose message is the rest of the line, tabs included.
"""

import gzip
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from ..models.records import LineError, LogRecord

logger = logging.getLogger(__name__)

TIMESTAMP_LAYOUT = '%Y-%m-%d %H:%M:%S'
FIELD_SEPARATOR = '\t'
COMMENT_PREFIX = '#'
GZIP_MAGIC = b'\x1f\x8b'

# strptime accepts single digit fields, the log layout is zero padded
DATE_FIELD = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_FIELD = re.compile(r'^\d{2}:\d{2}:\d{2}$')


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_date_and_message(line: str) -> Tuple[datetime, str]:
    """
    Split an access log line into its timestamp and message

    Args:
        line: One data line

    Returns:
        Tuple of (UTC timestamp, remainder of the line)

    Raises:
        ValueError: If the line has fewer than three fields or the date/time is malformed
    """
    parts = line.split(FIELD_SEPARATOR, 2)
    if len(parts) < 3:
        raise ValueError(f"expected at least 3 tab separated fields, got {len(parts)}")
    if not DATE_FIELD.match(parts[0]) or not TIME_FIELD.match(parts[1]):
        raise ValueError(f"time data {parts[0]!r} {parts[1]!r} does not match format {TIMESTAMP_LAYOUT!r}")

    timestamp = datetime.strptime(f"{parts[0]} {parts[1]}", TIMESTAMP_LAYOUT)
    return timestamp.replace(tzinfo=timezone.utc), parts[2]


class AccessLogParser:
    """
    Lazy, restartable parser over the decompressed content of one log object.

    Iterating yields LogRecords in input order. Lines with an unparsable
    timestamp are kept and stamped with the current time; they are reported
    through ``errors``, which is rebuilt on every iteration.
    """

    def __init__(self, content: bytes, clock: Optional[Callable[[], datetime]] = None):
        self.content = content
        self.clock = clock or utc_now
        self.errors: List[LineError] = []

    def __iter__(self) -> Iterator[LogRecord]:
        self.errors = []
        text = self.content.decode('utf-8', errors='replace')

        for line_number, line in enumerate(text.split('\n'), start=1):
            if line.endswith('\r'):
                line = line[:-1]
            if not line or line.startswith(COMMENT_PREFIX):
                continue

            try:
                timestamp, message = parse_date_and_message(line)
            except ValueError as e:
                timestamp = self.clock()
                message = _fallback_message(line)
                self.errors.append(LineError(line_number=line_number, line=line, reason=str(e)))
                logger.debug(f"Line {line_number}: {str(e)}, using current time")

            yield LogRecord(timestamp=timestamp, message=message)


def _fallback_message(line: str) -> str:
    # Strip the date/time prefix when it is there, otherwise keep the whole line
    parts = line.split(FIELD_SEPARATOR, 2)
    if len(parts) < 3:
        return line
    return parts[2]


def parse_lines(content: bytes, clock: Optional[Callable[[], datetime]] = None) -> List[LogRecord]:
    """Parse decompressed log content into a list of records"""
    return list(AccessLogParser(content, clock=clock))


def decompress(content: bytes, object_key: str = '') -> bytes:
    """
    Decompress a downloaded log object

    CloudFront writes gzip compressed objects; anything else is returned untouched.
    """
    if object_key.endswith('.gz') or content[:2] == GZIP_MAGIC:
        return gzip.decompress(content)
    return content


def sort_records(records: Iterable[LogRecord]) -> List[LogRecord]:
    """Sort records chronologically; records with equal timestamps keep their order"""
    return sorted(records, key=lambda record: record.timestamp)
