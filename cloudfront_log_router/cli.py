"""
Command line entry point
"""

import argparse
import json
import logging
import signal
import sys
import threading
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from . import __version__
from .clients import AwsClients
from .config import Settings
from .exceptions import LogRouterError
from .services.discovery import describe
from .services.supervisor import build_discovery, discover_and_watch, watch_distribution
from .utils.logger import VERBOSITY_LEVELS, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cloudfront-log-router',
        description='Ships CloudFront access logs from S3 into CloudWatch Logs'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--region', help='AWS region (defaults to AWS_REGION)')
    common.add_argument('--verbosity', choices=sorted(VERBOSITY_LEVELS), help='Verbosity level (defaults to LOG_LEVEL)')

    tags = argparse.ArgumentParser(add_help=False)
    tags.add_argument('--tag-group', dest='tag_name_log_group',
                      help='Tag name on cloudfront distribution to use for log group')
    tags.add_argument('--tag-stream', dest='tag_name_log_stream',
                      help='Tag name on cloudfront distribution to use for log stream')

    subparsers.add_parser('discover', parents=[common, tags],
                          help='Discovers distributions with required tags and required resources')
    subparsers.add_parser('discover-watch', parents=[common, tags],
                          help='Discover CloudFront distributions with logging configured and watch their queues')

    watch = subparsers.add_parser('watch', parents=[common],
                                  help='Watch the log queue of a single CloudFront distribution')
    watch.add_argument('--distribution', required=True, help='ID of the cloudfront distribution')
    watch.add_argument('--group', required=True, help='Log group to push logs to')
    watch.add_argument('--stream', required=True, help='Log stream to push logs to')

    subparsers.add_parser('version', help='Prints the version')

    return parser


def install_signal_handlers(stop_event: threading.Event) -> None:
    def handle(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def run_discover(settings: Settings, clients: AwsClients) -> int:
    discovery = build_discovery(clients, settings)
    endpoints = discovery.find_tagged_distributions()
    print(json.dumps(describe(endpoints), indent='\t'))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for standalone execution
    """
    args = build_parser().parse_args(argv)

    if args.command == 'version':
        print(f"cloudfront-log-router {__version__}")
        return 0

    settings = Settings.from_env(
        region=args.region,
        log_level=args.verbosity,
        tag_name_log_group=getattr(args, 'tag_name_log_group', None),
        tag_name_log_stream=getattr(args, 'tag_name_log_stream', None)
    )
    setup_logging(settings.log_level)
    logger.debug("initialising")

    try:
        clients = AwsClients.create(settings.region)
    except BotoCoreError as e:
        logger.error(f"unable to initialise aws session: {str(e)}")
        return 1

    stop_event = threading.Event()

    try:
        if args.command == 'discover':
            return run_discover(settings, clients)

        install_signal_handlers(stop_event)
        if args.command == 'discover-watch':
            discover_and_watch(clients, settings, stop_event)
        elif args.command == 'watch':
            watch_distribution(clients, settings, args.distribution, args.group, args.stream, stop_event)
    except (LogRouterError, ClientError) as e:
        logger.error(f"{args.command} failed: {str(e)}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
