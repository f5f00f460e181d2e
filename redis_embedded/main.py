#!/usr/bin/env python3

import argparse
import logging
import sys

from .cluster import RedisClusterBuilder
from .config import Settings
from .runner import ClusterRunner


def set_logging_config(tags, log_level_str=None):
    """Configure logging to output only to stderr."""
    handlers = [logging.StreamHandler(sys.stderr)]

    log_levels = {
        'critical': logging.CRITICAL,
        'error': logging.ERROR,
        'warning': logging.WARNING,
        'info': logging.INFO,
        'debug': logging.DEBUG,
    }

    log_level = log_levels.get(log_level_str)
    if log_level is None:
        logging.warning(f'Unknown log level {log_level_str}, setting info')
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=f'[{tags} %(asctime)s %(levelname)8s] %(message)s',
        handlers=handlers,
    )


def run_cluster(args, config: Settings):
    set_logging_config('redis-embedded', log_level_str=args.log_level or config.log_level)
    runner = ClusterRunner(config)
    runner.run()


def print_ports(args, config: Settings):
    set_logging_config('redis-embedded', log_level_str=args.log_level or config.log_level)
    cluster = RedisClusterBuilder.from_settings(config).build()
    for port in cluster.sentinel_ports():
        print(f'sentinel {port}')
    for port in cluster.server_ports():
        print(f'server {port}')


def main(argv=None):
    parser = argparse.ArgumentParser(prog='redis_embedded')
    parser.add_argument(
        'mode', help='run mode',
        type=str,
        choices=['run', 'ports'])
    parser.add_argument('--config', help='cluster config file path', default=None, type=str)
    parser.add_argument(
        '--log-level', help='overrides log_level from the config file', default=None,
        choices=['critical', 'error', 'warning', 'info', 'debug'],
    )
    args = parser.parse_args(argv)

    config = Settings()
    if args.config:
        config.load(args.config)

    if args.mode == 'run':
        run_cluster(args, config)
    if args.mode == 'ports':
        print_ports(args, config)


if __name__ == '__main__':
    main()
