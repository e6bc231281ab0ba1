"""
Unit tests for running watchers across discovered distributions
"""
import threading
from unittest.mock import Mock, patch

import pytest

from cloudfront_log_router.clients import AwsClients
from cloudfront_log_router.config import Settings
from cloudfront_log_router.exceptions import QueueResolutionError
from cloudfront_log_router.models.resources import Endpoint, LogDestination, QueueBinding
from cloudfront_log_router.services import supervisor

QUEUE_ARN = 'arn:aws:sqs:ap-southeast-2:123456789012:cloudfront-logs'


def make_binding(distribution_id):
    return QueueBinding(
        endpoint=Endpoint(id=distribution_id),
        queue_arn=QUEUE_ARN,
        destination=LogDestination(group='/cf', stream=f"cloudfront-{distribution_id}"),
    )


@pytest.fixture
def clients():
    return AwsClients(cloudfront=Mock(), s3=Mock(), sqs=Mock(), logs=Mock())


class TestRunWatchers:
    """Test running watchers side by side."""

    def test_all_watchers_run(self):
        watchers = [Mock(binding=make_binding(f"E{i}")) for i in range(3)]
        stop_event = threading.Event()

        assert supervisor.run_watchers(watchers, stop_event) == 3

        for watcher in watchers:
            watcher.watch.assert_called_once_with(stop_event)

    def test_failing_watcher_does_not_affect_others(self):
        broken = Mock(binding=make_binding('E1'))
        broken.watch.side_effect = QueueResolutionError('missing queue')
        crashing = Mock(binding=make_binding('E2'))
        crashing.watch.side_effect = RuntimeError('boom')
        healthy = Mock(binding=make_binding('E3'))

        assert supervisor.run_watchers([broken, crashing, healthy], threading.Event()) == 3

        healthy.watch.assert_called_once()
        broken.logger.error.assert_called_once()
        crashing.logger.error.assert_called_once()

    def test_blocks_until_stopped(self):
        stop_event = threading.Event()
        watcher = Mock(binding=make_binding('E1'))
        watcher.watch.side_effect = lambda event: event.wait(5)

        timer = threading.Timer(0.1, stop_event.set)
        timer.start()
        supervisor.run_watchers([watcher], stop_event)
        timer.join()

        assert stop_event.is_set()


class TestDiscoverAndWatch:
    """Test the discover-then-watch entry point."""

    def test_one_watcher_per_binding(self, clients):
        settings = Settings()
        bindings = [make_binding('E1'), make_binding('E2')]

        with patch.object(supervisor, 'build_discovery') as build_discovery, \
                patch.object(supervisor, 'run_watchers', return_value=2) as run_watchers:
            build_discovery.return_value.discover.return_value = bindings

            assert supervisor.discover_and_watch(clients, settings) == 2

        watchers = run_watchers.call_args[0][0]
        assert [w.binding.endpoint.id for w in watchers] == ['E1', 'E2']
        assert all(w.sqs_client is clients.sqs for w in watchers)

    def test_nothing_discovered(self, clients):
        with patch.object(supervisor, 'build_discovery') as build_discovery, \
                patch.object(supervisor, 'run_watchers') as run_watchers:
            build_discovery.return_value.discover.return_value = []

            assert supervisor.discover_and_watch(clients, Settings()) == 0

        run_watchers.assert_not_called()

    def test_discovery_uses_settings(self, clients):
        settings = Settings(tag_name_log_group='custom/group', log_stream_prefix='edge')

        discovery = supervisor.build_discovery(clients, settings)

        assert discovery.tag_name_log_group == 'custom/group'
        assert discovery.log_stream_prefix == 'edge'
        assert discovery.cloudfront_client is clients.cloudfront


class TestWatchDistribution:
    """Test watching a single distribution."""

    def test_explicit_destination(self, clients):
        stop_event = threading.Event()

        with patch.object(supervisor, 'build_discovery') as build_discovery, \
                patch.object(supervisor, 'QueueWatcher') as watcher_class:
            build_discovery.return_value.get_distribution_log_queue.return_value = QUEUE_ARN

            supervisor.watch_distribution(clients, Settings(), 'E1', '/cf/site', 'edge', stop_event)

        binding = watcher_class.call_args[0][0]
        assert binding.endpoint.id == 'E1'
        assert binding.queue_arn == QUEUE_ARN
        assert binding.destination == LogDestination(group='/cf/site', stream='edge')
        watcher_class.return_value.watch.assert_called_once_with(stop_event)

    def test_unresolvable_queue_raises(self, clients):
        with patch.object(supervisor, 'build_discovery') as build_discovery:
            build_discovery.return_value.get_distribution_log_queue.side_effect = QueueResolutionError('none')

            with pytest.raises(QueueResolutionError):
                supervisor.watch_distribution(clients, Settings(), 'E1', '/cf/site', 'edge')
