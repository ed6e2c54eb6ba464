"""
Verification Routes
Handles POST /api/verification/ (payment slip check for a booking)
"""

from flask import Blueprint, current_app, jsonify, request

from verification_service.errors import GENERIC_SERVER_MESSAGE, VerificationError
from verification_service.extensions import db
from verification_service.log_config import get_logger
from verification_service.services.slip_verification import parse_verification_request

verification_bp = Blueprint("verification", __name__)

logger = get_logger(__name__)


def _failure(error):
    return jsonify(error.to_response()), error.status_code


@verification_bp.route("/", methods=["POST"])
def verify_slip():
    """
    Verify a bank-transfer slip and mark the booking as paid
    ---
    tags:
      - Verification
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - bookingID
            - refNbr
            - amount
          properties:
            bookingID:
              type: string
            refNbr:
              type: string
              description: Transfer reference number printed on the slip
            amount:
              type: number
    responses:
      200:
        description: Slip verified and appointment updated
      400:
        description: Invalid input, provider rejected the slip, or receiver mismatch
      404:
        description: Appointment not found
      409:
        description: Reference number already used
      500:
        description: Server misconfiguration or verification failure
    """
    try:
        verification = parse_verification_request(request.get_json(silent=True))
    except VerificationError as e:
        logger.info("verification_request_invalid", reason=e.message)
        return _failure(e)

    service = current_app.extensions["slip_verification"]
    try:
        outcome = service.verify(verification.booking_id, verification.ref_nbr, verification.amount)
    except VerificationError as e:
        return _failure(e)
    except Exception:
        db.session.rollback()
        logger.exception("verification_crashed", booking_id=verification.booking_id)
        return jsonify({"status": "failed", "message": GENERIC_SERVER_MESSAGE}), 500

    if outcome.notified:
        message = "Slip verified, appointment updated, and email sent"
    else:
        message = "Slip verified and appointment updated; confirmation email pending"

    return jsonify({
        "status": "verified",
        "message": message,
        "data": outcome.record,
    }), 200
