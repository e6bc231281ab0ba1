from .records import LineError, LogRecord
from .resources import Endpoint, LogDestination, QueueBinding
from .notification import S3EventNotification, S3EventRecord, parse_notification

__all__ = [
    'Endpoint',
    'LineError',
    'LogDestination',
    'LogRecord',
    'QueueBinding',
    'S3EventNotification',
    'S3EventRecord',
    'parse_notification',
]
