from verification_service.models.appointment import Appointment
from verification_service.models.notification import NotificationOutbox

__all__ = ["Appointment", "NotificationOutbox"]
