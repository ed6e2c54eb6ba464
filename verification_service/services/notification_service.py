"""
Notification Service - confirmation outbox
enqueue_confirmation() joins the verification transaction; dispatch()
runs after commit and only ever records its outcome on the outbox row.
"""

from datetime import datetime, timezone

from verification_service.errors import NotificationError
from verification_service.extensions import db
from verification_service.log_config import get_logger
from verification_service.models import NotificationOutbox
from verification_service.services.email_service import compose_confirmation

logger = get_logger(__name__)


def enqueue_confirmation(appointment, signature="M-Care Team"):
    subject, body = compose_confirmation(appointment, signature)
    entry = NotificationOutbox(
        booking_id=appointment.booking_id,
        recipient=appointment.user_email,
        subject=subject,
        body=body,
        status="PENDING",
        attempts=0,
    )
    db.session.add(entry)
    return entry


def dispatch(entry, mailer):
    """
    Deliver one outbox entry. Returns True when sent.
    Delivery and bookkeeping failures are logged, never raised.
    """
    entry.attempts = (entry.attempts or 0) + 1
    try:
        mailer.send(entry.recipient, entry.subject, entry.body)
        entry.status = "SENT"
        entry.sent_at = datetime.now(timezone.utc)
        entry.last_error = None
        sent = True
    except NotificationError as e:
        entry.status = "FAILED"
        entry.last_error = str(e)
        sent = False
        logger.error("confirmation_email_failed", booking_id=entry.booking_id, error=str(e))
    except Exception as e:
        entry.status = "FAILED"
        entry.last_error = f"unexpected: {e}"
        sent = False
        logger.exception("confirmation_email_crashed", booking_id=entry.booking_id)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("outbox_update_failed", booking_id=entry.booking_id)

    if sent:
        logger.info("confirmation_email_sent", booking_id=entry.booking_id, recipient=entry.recipient)
    return sent


def dispatch_pending(mailer, limit=50):
    """Re-send PENDING and FAILED entries, oldest first. Returns (sent, failed)."""
    entries = (
        NotificationOutbox.query.filter(NotificationOutbox.status.in_(("PENDING", "FAILED")))
        .order_by(NotificationOutbox.created_at.asc(), NotificationOutbox.id.asc())
        .limit(limit)
        .all()
    )
    sent = failed = 0
    for entry in entries:
        if dispatch(entry, mailer):
            sent += 1
        else:
            failed += 1
    return sent, failed
