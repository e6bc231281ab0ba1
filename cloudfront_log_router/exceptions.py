"""
Exception hierarchy for the log router
"""


class LogRouterError(Exception):
    """Base exception for all log router errors"""
    pass


class NonRecoverableError(LogRouterError):
    """Exception for errors that should not be retried (e.g., malformed notification)"""
    pass


class InvalidS3NotificationError(NonRecoverableError):
    """Exception for invalid S3 notifications that cannot be processed"""
    pass


class QueueResolutionError(NonRecoverableError):
    """Exception for when the notification queue for a distribution cannot be resolved"""
    pass


class DestinationError(LogRouterError):
    """Exception for when a log group or log stream cannot be created"""
    pass


class SequenceTokenRetryError(LogRouterError):
    """Exception for when a batch could not be appended within the retry limit"""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
