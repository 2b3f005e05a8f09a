"""
Command line entry point for the spam classification stress test.

Examples:
    python -m spamstress --host mail.test --scenario all
    python -m spamstress --threads 10 --messages 50 --no-manage-account --json
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from .config import HarnessConfig, ServerEndpoints, SpamClassifierSettings
from .environment import ServerAdmin, TestEnvironment
from .errors import HarnessError
from .inspector import MailboxInspector
from .runner import ScenarioResult, StressRunner
from .submitter import MessageSubmitter

logger = logging.getLogger(__name__)

SEQUENTIAL_MESSAGES = 15
CONCURRENT_THREADS = 5
CONCURRENT_MESSAGES = 100


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return number


def non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Stress test a mail server\'s spam classification under concurrent load')
    parser.add_argument('--host', help='Mail server hostname')
    parser.add_argument('--smtp-port', type=int, help='SMTP port')
    parser.add_argument('--pop3-port', type=int, help='POP3 port')
    parser.add_argument('--admin-url', help='Base URL of the server admin API')
    parser.add_argument('--timeout', type=float, help='SMTP/POP3 socket timeout in seconds')
    parser.add_argument('--account', help='Dedicated mailbox address for the run')
    parser.add_argument('--password', help='Password for the dedicated mailbox')
    parser.add_argument('--spam-host', help='Spam classifier host')
    parser.add_argument('--spam-port', type=int, help='Spam classifier port')
    parser.add_argument('--marker', help='Header every delivered message must carry')
    parser.add_argument('--scenario', choices=['sequential', 'concurrent', 'all'], default='all',
                        help='Which scenario to run')
    parser.add_argument('--sequential-messages', type=non_negative_int, default=SEQUENTIAL_MESSAGES,
                        help='Messages sent in the sequential scenario')
    parser.add_argument('--threads', type=non_negative_int, default=CONCURRENT_THREADS,
                        help='Workers in the concurrent scenario')
    parser.add_argument('--messages', type=non_negative_int, default=CONCURRENT_MESSAGES,
                        help='Messages per worker in the concurrent scenario')
    parser.add_argument('--submit-retries', type=non_negative_int,
                        help='Reconnect attempts when an SMTP session cannot be opened')
    parser.add_argument('--delivery-timeout', type=non_negative_float,
                        help='Seconds to wait for accepted mail to reach the mailbox')
    parser.add_argument('--poll-interval', type=non_negative_float,
                        help='Seconds between mailbox count checks while waiting')
    parser.add_argument('--keep-going', action='store_true',
                        help='Keep a worker submitting after one of its sends fails')
    parser.add_argument('--no-manage-account', action='store_true',
                        help='Use an existing account instead of creating one')
    parser.add_argument('--no-monitor', action='store_true',
                        help='Skip local resource sampling')
    parser.add_argument('--json', action='store_true', help='Print results as JSON')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    return parser


def config_from_args(args: argparse.Namespace, base: Optional[HarnessConfig] = None) -> HarnessConfig:
    """Apply command line overrides on top of the environment config"""
    config = base or HarnessConfig.from_env()

    endpoints = config.endpoints
    endpoints = ServerEndpoints(
        host=args.host or endpoints.host,
        smtp_port=args.smtp_port or endpoints.smtp_port,
        pop3_port=args.pop3_port or endpoints.pop3_port,
        admin_url=args.admin_url or endpoints.admin_url,
        timeout=args.timeout or endpoints.timeout,
    )
    classifier = SpamClassifierSettings(
        enabled=config.classifier.enabled,
        host=args.spam_host or config.classifier.host,
        port=args.spam_port or config.classifier.port,
    )
    overrides = {'endpoints': endpoints, 'classifier': classifier}
    if args.account:
        overrides['account_address'] = args.account
    if args.password:
        overrides['account_password'] = args.password
    if args.marker:
        overrides['marker'] = args.marker
    if args.submit_retries is not None:
        overrides['submit_retries'] = args.submit_retries
    if args.keep_going:
        overrides['stop_worker_on_error'] = False
    if args.no_manage_account:
        overrides['manage_account'] = False
    if args.delivery_timeout is not None:
        overrides['delivery_timeout'] = args.delivery_timeout
    if args.poll_interval is not None:
        overrides['poll_interval'] = args.poll_interval
    if args.no_monitor:
        overrides['monitor_resources'] = False
    return replace(config, **overrides)


def build_runner(config: HarnessConfig, submitter=None, inspector=None) -> StressRunner:
    endpoints = config.endpoints
    submitter = submitter or MessageSubmitter(endpoints.host, endpoints.smtp_port,
                                              timeout=endpoints.timeout,
                                              retries=config.submit_retries)
    inspector = inspector or MailboxInspector(endpoints.host, endpoints.pop3_port,
                                              timeout=endpoints.timeout)
    return StressRunner(submitter, inspector, config.account_address, config.account_password,
                        marker=config.marker,
                        stop_worker_on_error=config.stop_worker_on_error,
                        monitor_resources=config.monitor_resources,
                        delivery_timeout=config.delivery_timeout,
                        poll_interval=config.poll_interval)


def run_scenarios(runner: StressRunner, args: argparse.Namespace) -> List[ScenarioResult]:
    results = []
    if args.scenario in ('sequential', 'all'):
        results.append(runner.run_sequential(args.sequential_messages))
    if args.scenario in ('concurrent', 'all'):
        results.append(runner.run_concurrent(args.threads, args.messages))
    return results


def print_results(results: List[ScenarioResult]):
    for result in results:
        print(f"\n--- {result.scenario.upper()} SCENARIO ---")
        print(f"Workers:            {result.workers}")
        print(f"Messages/worker:    {result.messages_per_worker}")
        print(f"Verified:           {result.verified}/{result.expected_total}")
        print(f"Submit time:        {result.submit_duration:.2f}s")
        print(f"Messages/second:    {result.messages_per_second:.2f}")
        print(f"Verify time:        {result.verify_duration:.2f}s")
        if result.peak_cpu_percent or result.peak_memory_mb:
            print(f"Peak CPU:           {result.peak_cpu_percent:.1f}%")
            print(f"Peak memory:        {result.peak_memory_mb:.1f} MB")


def main(argv: Optional[List[str]] = None, admin=None, submitter=None, inspector=None,
         probe=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    runner = build_runner(config, submitter, inspector)
    admin = admin or ServerAdmin(config.endpoints.admin_url)

    logger.info(f"Target: {config.endpoints.host} (SMTP {config.endpoints.smtp_port}, "
                f"POP3 {config.endpoints.pop3_port}), mailbox {config.account_address}")
    try:
        with TestEnvironment(config, admin, runner.inspector, probe=probe):
            results = run_scenarios(runner, args)
    except HarnessError as e:
        logger.error(f"Stress test failed: {e}")
        if args.json:
            print(json.dumps({"success": False, "error": str(e)}, indent=2))
        return 1

    if args.json:
        print(json.dumps({"success": True, "results": [r.to_dict() for r in results]}, indent=2))
    else:
        print_results(results)
        print("\nALL SCENARIOS PASSED")
    return 0


if __name__ == "__main__":
    sys.exit(main())
