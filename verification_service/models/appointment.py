"""
Appointment Model - Slip Verification Service
Bookings are created elsewhere; this service only moves an appointment
from awaiting payment to verified.
"""

from datetime import datetime, timezone

from verification_service.errors import DuplicateReferenceError
from verification_service.extensions import db

PAYMENT_VERIFIED = "verified"


def _iso(value):
    return value.isoformat() if value else None


class Appointment(db.Model):
    __tablename__ = "appointments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    user_name = db.Column(db.String(255), nullable=False)
    user_email = db.Column(db.String(255), nullable=False)
    slot_date = db.Column(db.String(32), nullable=False)
    slot_time = db.Column(db.String(32), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)

    payment_status = db.Column(db.String(20), nullable=True)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Unique: a payment reference can be consumed by one appointment only
    decoded_string = db.Column(db.String(128), unique=True, nullable=True)
    payment_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_verified(self):
        return self.payment_status == PAYMENT_VERIFIED

    def mark_verified(self, ref_nbr, notes=None, verified_at=None):
        if self.is_verified:
            raise DuplicateReferenceError("Appointment already verified")

        self.payment_status = PAYMENT_VERIFIED
        self.verified_at = verified_at or datetime.now(timezone.utc)
        self.decoded_string = ref_nbr
        self.payment_notes = notes

    def payment_verification_dict(self):
        if not self.payment_status:
            return None
        return {
            "status": self.payment_status,
            "verifiedAt": _iso(self.verified_at),
            "decodedString": self.decoded_string,
            "notes": self.payment_notes,
        }

    def to_dict(self):
        return {
            "bookingId": self.booking_id,
            "userDetails": {
                "name": self.user_name,
                "email": self.user_email,
            },
            "timeSlot": {
                "date": self.slot_date,
                "time": self.slot_time,
            },
            "amount": float(self.amount) if self.amount is not None else None,
            "paymentVerification": self.payment_verification_dict(),
            "createdAt": _iso(self.created_at),
        }
