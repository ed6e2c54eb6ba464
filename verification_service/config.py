"""
Configuration - Slip Verification Service
Environment is read once (after .env is loaded) and turned into explicit
settings objects that the app factory hands to the service.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from verification_service.errors import MisconfigurationError

DEFAULT_VERIFY_URL = "https://api.openslipverify.com/v1/verify"

REQUIRED_KEYS = ("OPEN_SLIP_VERIFY_TOKEN", "PROMPTPAY_RECEIVER_NAME")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_environment():
    """Load .env from the project root, never overriding real env vars."""
    env_path = Path(__file__).resolve().parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)


def database_url(environ=None):
    environ = os.environ if environ is None else environ
    if environ.get("DATABASE_URL"):
        return environ["DATABASE_URL"]

    db_user = environ.get("DB_USER", "verification_svc_user")
    db_pass = environ.get("DB_PASS", "password")
    db_host = environ.get("DB_HOST", "appointments-db")
    db_name = environ.get("DB_NAME", "appointments_db")
    return f"postgresql://{db_user}:{db_pass}@{db_host}/{db_name}"


def _positive_int(mapping, key, default):
    raw = mapping.get(key)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise MisconfigurationError(f"{key} must be an integer", missing=[key])
    if value <= 0:
        raise MisconfigurationError(f"{key} must be positive", missing=[key])
    return value


@dataclass(frozen=True)
class VerificationSettings:
    token: str
    receiver_name: str
    verify_url: str = DEFAULT_VERIFY_URL
    timeout_ms: int = 5000
    max_attempts: int = 3
    backoff_ms: int = 1000

    @classmethod
    def from_mapping(cls, mapping):
        """
        Build settings from an env-like mapping.
        Raises MisconfigurationError listing every missing required key.
        """
        missing = [key for key in REQUIRED_KEYS if not mapping.get(key)]
        if missing:
            raise MisconfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )

        return cls(
            token=mapping["OPEN_SLIP_VERIFY_TOKEN"],
            receiver_name=mapping["PROMPTPAY_RECEIVER_NAME"],
            verify_url=mapping.get("OPEN_SLIP_VERIFY_URL") or DEFAULT_VERIFY_URL,
            timeout_ms=_positive_int(mapping, "SLIP_VERIFY_TIMEOUT_MS", 5000),
            max_attempts=_positive_int(mapping, "SLIP_VERIFY_MAX_ATTEMPTS", 3),
            backoff_ms=_positive_int(mapping, "SLIP_VERIFY_BACKOFF_MS", 1000),
        )

    def __repr__(self):
        # keep the token out of logs and tracebacks
        return (
            f"VerificationSettings(receiver_name={self.receiver_name!r}, "
            f"verify_url={self.verify_url!r}, timeout_ms={self.timeout_ms}, "
            f"max_attempts={self.max_attempts}, backoff_ms={self.backoff_ms})"
        )


@dataclass(frozen=True)
class MailSettings:
    host: str = None
    port: int = 587
    username: str = None
    password: str = None
    use_tls: bool = True
    from_address: str = "M-Care <noreply@m-care.local>"
    signature: str = "M-Care Team"

    @property
    def enabled(self):
        return bool(self.host)

    @classmethod
    def from_mapping(cls, mapping):
        use_tls = mapping.get("SMTP_USE_TLS")
        return cls(
            host=mapping.get("SMTP_HOST") or None,
            port=_positive_int(mapping, "SMTP_PORT", 587),
            username=mapping.get("SMTP_USERNAME") or None,
            password=mapping.get("SMTP_PASSWORD") or None,
            use_tls=True if use_tls in (None, "") else str(use_tls).lower() in _TRUE_VALUES,
            from_address=mapping.get("EMAIL_FROM_ADDRESS") or cls.from_address,
            signature=mapping.get("EMAIL_SIGNATURE") or cls.signature,
        )


ENV_KEYS = REQUIRED_KEYS + (
    "OPEN_SLIP_VERIFY_URL",
    "SLIP_VERIFY_TIMEOUT_MS",
    "SLIP_VERIFY_MAX_ATTEMPTS",
    "SLIP_VERIFY_BACKOFF_MS",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "SMTP_USE_TLS",
    "EMAIL_FROM_ADDRESS",
    "EMAIL_SIGNATURE",
    "LOG_LEVEL",
)


def config_from_env(environ=None):
    """Flask config defaults taken from the process environment."""
    environ = os.environ if environ is None else environ
    config = {key: environ.get(key) for key in ENV_KEYS}
    config["SQLALCHEMY_DATABASE_URI"] = database_url(environ)
    config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    return config
