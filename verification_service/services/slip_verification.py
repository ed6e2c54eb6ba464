"""
Slip Verification Service
Handles the verify-and-mark-paid flow:
  idempotency check -> provider call (retrying) -> receiver check
  -> appointment update (+ outbox row) -> confirmation email
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from verification_service.errors import (
    AppointmentNotFoundError,
    DuplicateReferenceError,
    InvalidRequestError,
    MisconfigurationError,
    PersistenceError,
    ReceiverMismatchError,
    VerificationRejectedError,
)
from verification_service.extensions import db
from verification_service.log_config import get_logger
from verification_service.models import Appointment
from verification_service.services import notification_service
from verification_service.services.names import normalize_name

REQUIRED_FIELDS = ("bookingID", "refNbr", "amount")


@dataclass(frozen=True)
class VerificationRequest:
    booking_id: str
    ref_nbr: str
    amount: Decimal


@dataclass(frozen=True)
class VerificationOutcome:
    appointment: Appointment
    record: dict
    notified: bool


def parse_verification_request(payload):
    if not isinstance(payload, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    missing = [f for f in REQUIRED_FIELDS if payload.get(f) in (None, "")]
    if missing:
        raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

    booking_id, ref_nbr, amount = (payload[f] for f in REQUIRED_FIELDS)
    if not isinstance(booking_id, str) or not isinstance(ref_nbr, str):
        raise InvalidRequestError("bookingID and refNbr must be strings")

    # bool is an int subclass; reject it explicitly
    if isinstance(amount, bool):
        raise InvalidRequestError("amount must be a number")
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        raise InvalidRequestError("amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidRequestError("amount must be a positive number")

    booking_id, ref_nbr = booking_id.strip(), ref_nbr.strip()
    if not booking_id or not ref_nbr:
        raise InvalidRequestError("bookingID and refNbr must not be blank")

    return VerificationRequest(booking_id=booking_id, ref_nbr=ref_nbr, amount=amount)


def find_by_reference(ref_nbr):
    return Appointment.query.filter_by(decoded_string=ref_nbr).first()


def find_by_booking_id(booking_id):
    return Appointment.query.filter_by(booking_id=booking_id).first()


class SlipVerificationService:
    def __init__(self, settings, client, mailer, logger=None, clock=None, signature="M-Care Team"):
        self.settings = settings
        self.client = client
        self.mailer = mailer
        self.signature = signature
        self._logger = logger or get_logger(__name__)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def verify(self, booking_id, ref_nbr, amount):
        """
        Verify a slip reference and mark the booking as paid.
        Raises a VerificationError subclass on every rejection path.
        """
        log = self._logger.bind(booking_id=booking_id, ref_nbr=ref_nbr)

        if self.settings is None or self.client is None:
            log.error("verification_misconfigured")
            raise MisconfigurationError()

        if find_by_reference(ref_nbr) is not None:
            log.info("reference_already_used")
            raise DuplicateReferenceError()

        result = self.client.verify(ref_nbr, amount)
        if not result.success:
            log.info("verification_rejected", provider_message=result.message)
            raise VerificationRejectedError(result.message)

        expected = normalize_name(self.settings.receiver_name)
        got = normalize_name(result.receiver_name)
        if expected != got:
            log.warning("receiver_mismatch", expected=expected, got=got)
            raise ReceiverMismatchError(expected=expected, got=got)

        appointment = find_by_booking_id(booking_id)
        if appointment is None:
            log.info("appointment_not_found")
            raise AppointmentNotFoundError()

        appointment.mark_verified(ref_nbr, notes=result.status_message or None, verified_at=self._clock())
        entry = notification_service.enqueue_confirmation(appointment, self.signature)
        self._commit(log)
        log.info("slip_verified")

        # a failed outbox commit in dispatch() expires both rows
        record = appointment.to_dict()
        outbox_id = entry.id

        notified = notification_service.dispatch(entry, self.mailer)
        if not notified:
            log.warning("confirmation_pending", outbox_id=outbox_id)
        return VerificationOutcome(appointment=appointment, record=record, notified=notified)

    def _commit(self, log):
        try:
            db.session.commit()
        except IntegrityError as e:
            # Lost the race against a concurrent request with the same reference
            db.session.rollback()
            log.warning("reference_conflict_on_commit", error=str(e.orig))
            raise DuplicateReferenceError() from e
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("appointment_save_failed", error=str(e))
            raise PersistenceError() from e
