from decimal import Decimal
from unittest.mock import MagicMock

from verification_service.app import create_app
from verification_service.extensions import db
from verification_service.models import Appointment
from verification_service.services.slip_client import SlipVerifyResult

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "OPEN_SLIP_VERIFY_TOKEN": "test-token",
    "PROMPTPAY_RECEIVER_NAME": "Mr. Somchai Jaidee",
    "SMTP_HOST": None,
    "LOG_LEVEL": "WARNING",
}


def make_app(config=None, slip_client=None, mailer=None):
    app = create_app(
        config={**TEST_CONFIG, **(config or {})},
        slip_client=slip_client if slip_client is not None else MagicMock(),
        mailer=mailer if mailer is not None else MagicMock(),
    )
    with app.app_context():
        db.create_all()
    return app


def seed_appointment(booking_id="BK-1001", **overrides):
    values = {
        "booking_id": booking_id,
        "user_name": "Anong Srisuk",
        "user_email": "anong@example.com",
        "slot_date": "2026-11-02",
        "slot_time": "10:30",
        "amount": Decimal("500.00"),
    }
    values.update(overrides)
    appointment = Appointment(**values)
    db.session.add(appointment)
    db.session.commit()
    return appointment


def provider_ok(receiver_name="SOMCHAI JAIDEE", status_message="Slip is valid", message=None):
    return SlipVerifyResult(
        success=True,
        receiver_name=receiver_name,
        message=message,
        status_message=status_message,
        raw={
            "success": True,
            "data": {"receiver": {"name": receiver_name}},
            "msg": message,
            "statusMessage": status_message,
        },
    )


def ok_response(payload):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = payload
    return response
