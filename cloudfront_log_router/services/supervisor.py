"""
Runs one queue watcher per discovered distribution
"""

import logging
import threading
from typing import List, Optional

from ..clients import AwsClients
from ..config import Settings
from ..exceptions import QueueResolutionError
from ..models.resources import Endpoint, LogDestination, QueueBinding
from .discovery import DistributionDiscovery
from .watcher import QueueWatcher

logger = logging.getLogger(__name__)


def build_discovery(clients: AwsClients, settings: Settings) -> DistributionDiscovery:
    return DistributionDiscovery(
        clients.cloudfront,
        clients.s3,
        tag_name_log_group=settings.tag_name_log_group,
        tag_name_log_stream=settings.tag_name_log_stream,
        log_stream_prefix=settings.log_stream_prefix
    )


def build_watcher(clients: AwsClients, settings: Settings, binding: QueueBinding) -> QueueWatcher:
    return QueueWatcher(binding, clients.sqs, clients.s3, clients.logs, settings=settings)


def run_watchers(watchers: List[QueueWatcher], stop_event: threading.Event) -> int:
    """
    Run each watcher in its own thread and block until all of them return

    A watcher failing to start (e.g. its queue cannot be resolved) is logged and
    does not affect the others.

    Returns:
        Number of watchers that were started
    """
    def run(watcher: QueueWatcher) -> None:
        try:
            watcher.watch(stop_event)
        except QueueResolutionError as e:
            watcher.logger.error(f"couldn't resolve sqs queue: {str(e)}")
        except Exception as e:
            watcher.logger.error(f"watcher stopped unexpectedly: {str(e)}", exc_info=True)

    threads = []
    for watcher in watchers:
        thread = threading.Thread(
            target=run,
            args=(watcher,),
            name=f"watcher-{watcher.binding.endpoint.id}",
            daemon=True
        )
        thread.start()
        threads.append(thread)

    # Join with a timeout so the main thread stays responsive to signals
    for thread in threads:
        while thread.is_alive():
            thread.join(timeout=1.0)

    return len(threads)


def discover_and_watch(clients: AwsClients, settings: Settings, stop_event: Optional[threading.Event] = None) -> int:
    """
    Discover tagged distributions once and watch all of their queues

    Returns:
        Number of watchers started
    """
    if stop_event is None:
        stop_event = threading.Event()

    logger.debug("starting cloudfront distribution discovery")
    bindings = build_discovery(clients, settings).discover()
    if not bindings:
        logger.warning("No distributions with log queues found, nothing to watch")
        return 0

    watchers = [build_watcher(clients, settings, binding) for binding in bindings]
    started = run_watchers(watchers, stop_event)
    logger.info("done")
    return started


def watch_distribution(
    clients: AwsClients,
    settings: Settings,
    distribution_id: str,
    group: str,
    stream: str,
    stop_event: Optional[threading.Event] = None
) -> None:
    """
    Watch the log queue of one distribution with an explicit destination

    Raises:
        QueueResolutionError: If the queue for the distribution cannot be resolved
    """
    if stop_event is None:
        stop_event = threading.Event()

    discovery = build_discovery(clients, settings)
    queue_arn = discovery.get_distribution_log_queue(distribution_id)
    logger.debug(f"sqs queue for logs is {queue_arn}")

    binding = QueueBinding(
        endpoint=Endpoint(id=distribution_id),
        queue_arn=queue_arn,
        destination=LogDestination(group=group, stream=stream)
    )
    watcher = build_watcher(clients, settings, binding)
    watcher.watch(stop_event)
