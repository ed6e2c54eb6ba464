"""
Slip Verify Client - outbound call to the slip verification provider.
POST {verify_url} with { refNbr, amount, token }, retried with linear
backoff (1s after attempt 1, 2s after attempt 2, ...).
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_incrementing

from verification_service.errors import ProviderUnavailableError
from verification_service.log_config import get_logger

# Network errors, timeouts, non-2xx (HTTPError) and unparseable bodies
RETRYABLE_ERRORS = (requests.RequestException, ValueError)


class RetryPolicy:
    """Bounded retry: max_attempts in total, attempt * backoff_ms between them."""

    def __init__(self, max_attempts=3, backoff_ms=1000, sleep=time.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms
        self.sleep = sleep

    def retrying(self, before_sleep=None):
        step = self.backoff_ms / 1000.0
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=step, increment=step),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            sleep=self.sleep,
            before_sleep=before_sleep,
            reraise=True,
        )


@dataclass(frozen=True)
class SlipVerifyResult:
    success: bool
    receiver_name: str = ""
    message: str = None
    status_message: str = None
    raw: dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload):
        data = payload.get("data")
        receiver = data.get("receiver") if isinstance(data, dict) else None
        name = receiver.get("name") if isinstance(receiver, dict) else None
        return cls(
            # anything but a literal true is a rejection
            success=payload.get("success") is True,
            receiver_name=name or "",
            message=payload.get("msg"),
            status_message=payload.get("statusMessage"),
            raw=payload,
        )


def format_amount(amount):
    """500 -> "500", 500.5 -> "500.5" """
    text = format(Decimal(str(amount)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class SlipVerifyClient:
    def __init__(self, verify_url, token, timeout_ms=5000, retry_policy=None, session=None, logger=None):
        self.verify_url = verify_url
        self.token = token
        self.timeout = timeout_ms / 1000.0
        self.retry_policy = retry_policy or RetryPolicy()
        self.session = session or requests.Session()
        self._logger = logger or get_logger(__name__)

    @classmethod
    def from_settings(cls, settings, sleep=time.sleep, session=None, logger=None):
        return cls(
            verify_url=settings.verify_url,
            token=settings.token,
            timeout_ms=settings.timeout_ms,
            retry_policy=RetryPolicy(settings.max_attempts, settings.backoff_ms, sleep=sleep),
            session=session,
            logger=logger,
        )

    def _post(self, ref_nbr, amount):
        response = self.session.post(
            self.verify_url,
            json={"refNbr": ref_nbr, "amount": format_amount(amount), "token": self.token},
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Provider response is not a JSON object")
        return payload

    def _log_retry(self, retry_state):
        self._logger.warning(
            "slip_verify_attempt_failed",
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(retry_state.outcome.exception()),
        )

    def verify(self, ref_nbr, amount):
        """
        Ask the provider to verify a transfer reference.
        Returns SlipVerifyResult; raises ProviderUnavailableError once every
        attempt has failed.
        """
        attempts = 0
        try:
            for attempt in self.retry_policy.retrying(before_sleep=self._log_retry):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    self._logger.debug("slip_verify_attempt", attempt=attempts, ref_nbr=ref_nbr)
                    payload = self._post(ref_nbr, amount)
        except RETRYABLE_ERRORS as e:
            self._logger.error(
                "slip_verify_unavailable", attempts=attempts, ref_nbr=ref_nbr, error=str(e)
            )
            raise ProviderUnavailableError(attempts=attempts) from e

        return SlipVerifyResult.from_payload(payload)
