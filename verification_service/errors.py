"""
Error taxonomy for slip verification.
Every VerificationError knows its HTTP status and renders the uniform
failure body { status: "failed", message, debug? }.
"""

GENERIC_SERVER_MESSAGE = "Server error or verification failed"


class VerificationError(Exception):
    status_code = 500
    default_message = GENERIC_SERVER_MESSAGE

    def __init__(self, message=None, debug=None):
        self.message = message or self.default_message
        self.debug = debug
        super().__init__(self.message)

    def to_response(self):
        body = {"status": "failed", "message": self.message}
        if self.debug is not None:
            body["debug"] = self.debug
        return body


class InvalidRequestError(VerificationError):
    status_code = 400
    default_message = "Missing required fields"


class MisconfigurationError(VerificationError):
    status_code = 500
    default_message = "Server misconfiguration"

    def __init__(self, message=None, missing=None):
        # Missing keys go to the log, never to the client.
        self.missing = list(missing or [])
        super().__init__(message)


class DuplicateReferenceError(VerificationError):
    status_code = 409
    default_message = "Reference number already used"


class ProviderUnavailableError(VerificationError):
    status_code = 500

    def __init__(self, message=None, attempts=0):
        self.attempts = attempts
        super().__init__(message)


class VerificationRejectedError(VerificationError):
    status_code = 400
    default_message = "Verification unsuccessful"


class ReceiverMismatchError(VerificationError):
    status_code = 400
    default_message = "Receiver account mismatch"

    def __init__(self, expected, got):
        super().__init__(debug={"expected": expected, "got": got})


class AppointmentNotFoundError(VerificationError):
    status_code = 404
    default_message = "Appointment not found"


class PersistenceError(VerificationError):
    status_code = 500


class NotificationError(Exception):
    """Confirmation delivery failed. Logged and recorded, never returned."""
