"""
Pydantic models for discovered distributions and their log destinations
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.validation import get_log_group_name


class Endpoint(BaseModel):
    """A CloudFront distribution considered for log shipping"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Distribution ID")
    arn: Optional[str] = Field(default=None, description="Distribution ARN")
    tags: Dict[str, str] = Field(default_factory=dict, description="Resource tags")


class LogDestination(BaseModel):
    """CloudWatch Logs group/stream pair receiving a distribution's records"""
    model_config = ConfigDict(frozen=True)

    group: Optional[str] = Field(default=None, description="Log group; derived from the object key when unset")
    stream: str = Field(..., min_length=1, description="Log stream")

    def resolve(self, object_key: str) -> 'LogDestination':
        """Return a destination with a concrete group for the given log object"""
        if self.group:
            return self
        return LogDestination(group=get_log_group_name(object_key), stream=self.stream)


class QueueBinding(BaseModel):
    """Links a distribution to the SQS queue notified about its new log objects"""
    model_config = ConfigDict(frozen=True)

    endpoint: Endpoint
    queue_arn: str = Field(..., min_length=1, description="ARN of the notification queue")
    destination: LogDestination
