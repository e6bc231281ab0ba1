"""
Pydantic models for S3 event notifications delivered through SQS
"""

import json
import urllib.parse
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import InvalidS3NotificationError


class S3Bucket(BaseModel):
    name: str = Field(..., min_length=1)
    arn: Optional[str] = None


class S3Object(BaseModel):
    key: str = Field(..., min_length=1)
    size: Optional[int] = None
    eTag: Optional[str] = None

    @field_validator('key')
    @classmethod
    def unquote_key(cls, v):
        """Object keys arrive URL encoded in event notifications"""
        return urllib.parse.unquote_plus(v)


class S3Entity(BaseModel):
    bucket: S3Bucket
    object: S3Object


class S3EventRecord(BaseModel):
    """One object-created record"""
    eventName: Optional[str] = None
    s3: S3Entity

    @property
    def bucket(self) -> str:
        return self.s3.bucket.name

    @property
    def key(self) -> str:
        return self.s3.object.key


class S3EventNotification(BaseModel):
    """S3 event notification body; s3:TestEvent bodies carry no records"""
    Records: List[S3EventRecord] = Field(default_factory=list)


def parse_notification(body: str) -> S3EventNotification:
    """
    Parse an SQS message body into an S3 event notification

    Bodies published through SNS are unwrapped from their envelope first.

    Raises:
        InvalidS3NotificationError: If the body is not a valid S3 event
    """
    try:
        data = json.loads(body)
        if isinstance(data, dict) and 'Records' not in data and isinstance(data.get('Message'), str):
            data = json.loads(data['Message'])
        if not isinstance(data, dict):
            raise InvalidS3NotificationError(f"Invalid SQS message format: expected an object, got {type(data).__name__}")
        return S3EventNotification.model_validate(data)
    except json.JSONDecodeError as e:
        raise InvalidS3NotificationError(f"Invalid SQS message format: {str(e)}")
    except ValidationError as e:
        raise InvalidS3NotificationError(f"Invalid S3 event format: {str(e)}")
