import os
import smtplib
import time

import pytest

from spamstress.config import HarnessConfig
from spamstress.environment import ServerAdmin, TestEnvironment
from spamstress.inspector import MailboxInspector
from spamstress.runner import StressRunner
from spamstress.submitter import MessageSubmitter


def pytest_collection_modifyitems(config, items):
    if os.environ.get("SPAMSTRESS_LIVE") == "1":
        return
    skip_live = pytest.mark.skip(reason="set SPAMSTRESS_LIVE=1 to run against a live mail server")
    for item in items:
        if "e2e" in item.nodeid:
            item.add_marker(skip_live)


@pytest.fixture(scope='session')
def harness_config():
    return HarnessConfig.from_env()


@pytest.fixture(scope='session', autouse=True)
def wait_for_services(harness_config):
    if os.environ.get("SPAMSTRESS_LIVE") != "1":
        return
    endpoints = harness_config.endpoints
    for _ in range(60):
        try:
            with smtplib.SMTP(endpoints.host, endpoints.smtp_port, timeout=2) as s:
                s.noop()
            return
        except OSError:
            time.sleep(1)
    pytest.exit('Mail server did not become reachable in time', returncode=1)


@pytest.fixture
def inspector(harness_config):
    endpoints = harness_config.endpoints
    return MailboxInspector(endpoints.host, endpoints.pop3_port, timeout=endpoints.timeout)


@pytest.fixture
def runner(harness_config, inspector):
    """A runner bound to a freshly created, empty mailbox"""
    endpoints = harness_config.endpoints
    submitter = MessageSubmitter(endpoints.host, endpoints.smtp_port, timeout=endpoints.timeout,
                                 retries=harness_config.submit_retries)
    admin = ServerAdmin(endpoints.admin_url)
    with TestEnvironment(harness_config, admin, inspector):
        yield StressRunner(submitter, inspector, harness_config.account_address,
                           harness_config.account_password, marker=harness_config.marker,
                           stop_worker_on_error=harness_config.stop_worker_on_error,
                           monitor_resources=harness_config.monitor_resources,
                           delivery_timeout=harness_config.delivery_timeout,
                           poll_interval=harness_config.poll_interval)
