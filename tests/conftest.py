"""
Test configuration and fixtures for unit tests
"""
import gzip
import io
import json
import os

import pytest
from moto import mock_aws

# Header written by CloudFront at the top of every standard log file
LOG_HEADER = (
    "#Version: 1.0\n"
    "#Fields: date time x-edge-location sc-bytes c-ip cs-method cs(Host) cs-uri-stem sc-status "
    "cs(Referer) cs(User-Agent) cs-uri-query cs(Cookie) x-edge-result-type x-edge-request-id\n"
)

SAMPLE_LINES = [
    "2020-06-18\t03:38:13\tSYD4-C2\t35207\t111.111.11.1\tGET\tasdasdasd.cloudfront.net\t/admin/people\t200\t-\tMozilla/5.0\t-\t-\tMiss\tid-1",
    "2020-06-18\t03:38:14\tSYD4-C2\t512\t111.111.11.2\tGET\tasdasdasd.cloudfront.net\t/\t200\t-\tcurl/7.64.1\t-\t-\tHit\tid-2",
    "2020-06-18\t03:38:12\tSYD4-C2\t1024\t111.111.11.3\tPOST\tasdasdasd.cloudfront.net\t/login\t302\t-\tMozilla/5.0\t-\t-\tMiss\tid-3",
    "2020-06-18\t03:38:15\tSYD4-C2\t77\t111.111.11.4\tGET\tasdasdasd.cloudfront.net\t/favicon.ico\t404\t-\tMozilla/5.0\t-\t-\tError\tid-4",
    "2020-06-18\tXX:38:15\tSYD4-C2\t77\t111.111.11.5\tGET\tasdasdasd.cloudfront.net\t/broken\t200\t-\tMozilla/5.0\t-\t-\tMiss\tid-5",
    "2020-06-18\t03:38:16\tSYD4-C2\t900\t111.111.11.6\tGET\tasdasdasd.cloudfront.net\t/about\t200\t-\tMozilla/5.0\t-\t-\tHit\tid-6",
    "2020-06-18\t03:38:17\tSYD4-C2\t901\t111.111.11.7\tGET\tasdasdasd.cloudfront.net\t/contact\t200\t-\tMozilla/5.0\t-\t-\tHit\tid-7",
    "2020-06-18\t03:38:18\tSYD4-C2\t902\t111.111.11.8\tGET\tasdasdasd.cloudfront.net\t/news\t200\t-\tMozilla/5.0\t-\t-\tMiss\tid-8",
]


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
    os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
    os.environ['AWS_SECURITY_TOKEN'] = 'testing'
    os.environ['AWS_SESSION_TOKEN'] = 'testing'
    os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock all AWS services."""
    with mock_aws():
        yield


@pytest.fixture
def environment_variables():
    """Set up test environment variables."""
    test_env = {
        'AWS_REGION': 'us-east-1',
        'MAX_BATCH_SIZE': '1000',
        'RETRY_ATTEMPTS': '3',
        'LAMBDA_LOG_STREAM': 'cloudfront',
        'LOG_LEVEL': 'debug',
    }

    # Store original values
    original_env = {}
    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    yield test_env

    # Restore original values
    for key, value in original_env.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def sample_log_content():
    """Ten line CloudFront log: two comment lines, one corrupted timestamp"""
    return (LOG_HEADER + "\n".join(SAMPLE_LINES) + "\n").encode('utf-8')


@pytest.fixture
def sample_log_gzip(sample_log_content):
    return gzip.compress(sample_log_content)


def make_s3_event(bucket, key):
    return {
        "Records": [
            {
                "eventSource": "aws:s3",
                "eventName": "ObjectCreated:Put",
                "s3": {
                    "bucket": {"name": bucket, "arn": f"arn:aws:s3:::{bucket}"},
                    "object": {"key": key, "size": 1024}
                }
            }
        ]
    }


@pytest.fixture
def s3_event_factory():
    return make_s3_event


@pytest.fixture
def sqs_message_factory():
    """Build an SQS ReceiveMessage entry wrapping an S3 event"""
    def factory(bucket='cf-logs', key='E2EXAMPLE.2020-06-18-03.abcd1234.gz', message_id='msg-1'):
        return {
            'MessageId': message_id,
            'ReceiptHandle': f"receipt-{message_id}",
            'Body': json.dumps(make_s3_event(bucket, key)),
        }
    return factory


@pytest.fixture
def s3_body_factory():
    """Mimic the streaming body returned by S3 get_object"""
    def factory(content):
        return {'Body': io.BytesIO(content)}
    return factory
