"""
Unit tests for the Lambda handler
"""
import json
from unittest.mock import Mock

import boto3
import pytest
from botocore.exceptions import ClientError

from cloudfront_log_router.clients import AwsClients
from cloudfront_log_router.config import Settings
from cloudfront_log_router.handlers.s3_event import lambda_handler, process_sqs_record

KEY = 'skpr/cluster/project/dev/E38J4Y0L8GXH9D.2020-06-08-07.d51ccc94.gz'


@pytest.fixture
def clients(s3_body_factory, sample_log_gzip):
    s3 = Mock()
    s3.get_object.side_effect = lambda Bucket, Key: s3_body_factory(sample_log_gzip)
    logs = Mock()
    logs.put_log_events.return_value = {'nextSequenceToken': 'token-1'}
    return AwsClients(cloudfront=Mock(), s3=s3, sqs=Mock(), logs=logs)


def sqs_event(*bodies):
    return {
        'Records': [
            {'messageId': f"msg-{i}", 'body': body, 'eventSource': 'aws:sqs'}
            for i, body in enumerate(bodies)
        ]
    }


class TestLambdaHandler:
    """Test the Lambda entry point."""

    def test_direct_s3_event(self, environment_variables, clients, s3_event_factory):
        result = lambda_handler(s3_event_factory('cf-logs', KEY), None, clients=clients)

        assert result == {'batchItemFailures': []}
        clients.s3.get_object.assert_called_once_with(Bucket='cf-logs', Key=KEY)
        clients.logs.create_log_group.assert_called_once_with(logGroupName='/skpr/cluster/project/dev')
        clients.logs.create_log_stream.assert_called_once_with(
            logGroupName='/skpr/cluster/project/dev', logStreamName='cloudfront'
        )
        assert len(clients.logs.put_log_events.call_args[1]['logEvents']) == 8

    def test_sqs_wrapped_event(self, environment_variables, clients, s3_event_factory):
        event = sqs_event(json.dumps(s3_event_factory('cf-logs', KEY)))

        result = lambda_handler(event, None, clients=clients)

        assert result == {'batchItemFailures': []}
        clients.logs.put_log_events.assert_called_once()

    def test_recoverable_failure_reported(self, environment_variables, clients, s3_event_factory):
        clients.logs.put_log_events.side_effect = ClientError(
            {'Error': {'Code': 'ServiceUnavailableException', 'Message': 'down'}}, 'PutLogEvents'
        )
        event = sqs_event(json.dumps(s3_event_factory('cf-logs', KEY)))

        result = lambda_handler(event, None, clients=clients)

        assert result == {'batchItemFailures': [{'itemIdentifier': 'msg-0'}]}

    def test_invalid_message_not_retried(self, environment_variables, clients, s3_event_factory):
        event = sqs_event('not json', json.dumps(s3_event_factory('cf-logs', KEY)))

        result = lambda_handler(event, None, clients=clients)

        assert result == {'batchItemFailures': []}
        clients.s3.get_object.assert_called_once()

    def test_direct_event_failure_raises(self, environment_variables, clients, s3_event_factory):
        clients.s3.get_object.side_effect = ClientError({'Error': {'Code': 'NoSuchKey', 'Message': 'gone'}}, 'GetObject')

        with pytest.raises(ClientError):
            lambda_handler(s3_event_factory('cf-logs', KEY), None, clients=clients)

    def test_stream_from_environment(self, environment_variables, clients, s3_event_factory, monkeypatch):
        monkeypatch.setenv('LAMBDA_LOG_STREAM', 'edge')

        lambda_handler(s3_event_factory('cf-logs', KEY), None, clients=clients)

        assert clients.logs.put_log_events.call_args[1]['logStreamName'] == 'edge'

    def test_empty_event(self, environment_variables, clients):
        assert lambda_handler({'Records': []}, None, clients=clients) == {'batchItemFailures': []}


class TestProcessSqsRecord:
    """Test processing one SQS record against moto."""

    def test_end_to_end(self, mock_aws_services, sample_log_gzip, s3_event_factory):
        s3 = boto3.client('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='cf-logs')
        s3.put_object(Bucket='cf-logs', Key=KEY, Body=sample_log_gzip)
        logs = boto3.client('logs', region_name='us-east-1')
        clients = AwsClients(cloudfront=Mock(), s3=s3, sqs=Mock(), logs=logs)

        pushed = process_sqs_record(
            {'messageId': 'msg-1', 'body': json.dumps(s3_event_factory('cf-logs', KEY))},
            clients,
            Settings(region='us-east-1')
        )

        assert pushed == 8
        streams = logs.describe_log_streams(logGroupName='/skpr/cluster/project/dev')['logStreams']
        assert [s['logStreamName'] for s in streams] == ['cloudfront']
