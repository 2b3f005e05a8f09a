"""
Run configuration for the spam classification stress harness.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_MARKER = "X-Spam-Status"
DEFAULT_DELIVERY_TIMEOUT = 60.0
DEFAULT_POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class ServerEndpoints:
    """Where the mail server under test listens"""
    host: str = "localhost"
    smtp_port: int = 25
    pop3_port: int = 110
    admin_url: str = "http://localhost:8081"
    timeout: float = 30.0  # socket timeout for SMTP/POP3 sessions


@dataclass(frozen=True)
class SpamClassifierSettings:
    """Spam classifier integration pushed to the server before a run"""
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 783


@dataclass(frozen=True)
class HarnessConfig:
    """Configuration for a stress run"""
    endpoints: ServerEndpoints = field(default_factory=ServerEndpoints)
    classifier: SpamClassifierSettings = field(default_factory=SpamClassifierSettings)
    account_address: str = "test@test.com"
    account_password: str = "test"
    marker: str = DEFAULT_MARKER
    # Retries only cover sessions that never reached the server
    submit_retries: int = 0
    stop_worker_on_error: bool = True
    monitor_resources: bool = True
    # How long verification waits for accepted mail to land in the mailbox
    delivery_timeout: float = DEFAULT_DELIVERY_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    # Create and delete the dedicated account through the admin API
    manage_account: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HarnessConfig":
        """Build a config from SPAMSTRESS_* environment variables"""
        env = os.environ if environ is None else environ
        defaults_endpoints = ServerEndpoints()
        defaults_classifier = SpamClassifierSettings()
        defaults = cls()

        endpoints = ServerEndpoints(
            host=env.get("SPAMSTRESS_HOST", defaults_endpoints.host),
            smtp_port=int(env.get("SPAMSTRESS_SMTP_PORT", defaults_endpoints.smtp_port)),
            pop3_port=int(env.get("SPAMSTRESS_POP3_PORT", defaults_endpoints.pop3_port)),
            admin_url=env.get("SPAMSTRESS_ADMIN_URL", defaults_endpoints.admin_url),
            timeout=float(env.get("SPAMSTRESS_TIMEOUT", defaults_endpoints.timeout)),
        )
        classifier = SpamClassifierSettings(
            enabled=_parse_bool(env.get("SPAMSTRESS_SPAM_ENABLED"), defaults_classifier.enabled),
            host=env.get("SPAMSTRESS_SPAM_HOST", defaults_classifier.host),
            port=int(env.get("SPAMSTRESS_SPAM_PORT", defaults_classifier.port)),
        )
        return cls(
            endpoints=endpoints,
            classifier=classifier,
            account_address=env.get("SPAMSTRESS_ACCOUNT", defaults.account_address),
            account_password=env.get("SPAMSTRESS_PASSWORD", defaults.account_password),
            marker=env.get("SPAMSTRESS_MARKER", defaults.marker),
            submit_retries=int(env.get("SPAMSTRESS_SUBMIT_RETRIES", defaults.submit_retries)),
            stop_worker_on_error=_parse_bool(env.get("SPAMSTRESS_STOP_ON_ERROR"),
                                             defaults.stop_worker_on_error),
            monitor_resources=_parse_bool(env.get("SPAMSTRESS_MONITOR"), defaults.monitor_resources),
            delivery_timeout=float(env.get("SPAMSTRESS_DELIVERY_TIMEOUT", defaults.delivery_timeout)),
            poll_interval=float(env.get("SPAMSTRESS_POLL_INTERVAL", defaults.poll_interval)),
            manage_account=_parse_bool(env.get("SPAMSTRESS_MANAGE_ACCOUNT"), defaults.manage_account),
        )


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")
