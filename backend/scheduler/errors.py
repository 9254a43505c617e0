"""Typed outcomes for scheduling operations.

Services raise these; a single exception handler in ``main`` renders them as
``{"error": message, "code": code, ...}`` with the class status code.
"""

from typing import Any


class SchedulingError(Exception):
    status_code = 500
    code = "scheduling_error"
    message = "Scheduling operation failed"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra}


# --- Validation ---


class InvalidRequest(SchedulingError):
    status_code = 400
    code = "invalid_request"
    message = "Slot ID and token are required"


class InvalidUpload(SchedulingError):
    status_code = 400
    code = "invalid_upload"
    message = "Invalid file. Only PDF, DOC, and DOCX files are allowed for resumes."


class NotFound(SchedulingError):
    status_code = 404
    code = "not_found"
    message = "Not found"


# --- State violations ---


class InvalidToken(SchedulingError):
    status_code = 400
    code = "invalid_token"
    message = "Invalid or expired invitation token"


class TokenAlreadyUsed(SchedulingError):
    status_code = 410
    code = "token_already_used"
    message = "This invitation link has already been used and is no longer valid"


class TokenNoLongerValid(SchedulingError):
    status_code = 410
    code = "token_no_longer_valid"
    message = "Cannot update resume. The invitation may have expired or been used."


class AlreadyBooked(SchedulingError):
    status_code = 409
    code = "already_booked"
    message = "You have already booked an interview slot with this invitation"


class ResumeRequired(SchedulingError):
    status_code = 400
    code = "resume_required"
    message = "Please upload your resume before booking a slot"


class InvalidStatus(SchedulingError):
    status_code = 400
    code = "invalid_status"
    message = "Interview status does not allow this operation"


class InvalidTransition(SchedulingError):
    status_code = 400
    code = "invalid_transition"
    message = "Interview status change is not allowed"


class SlotUnavailable(SchedulingError):
    status_code = 400
    code = "slot_unavailable"
    message = "Slot is no longer available or has passed"


class SlotInUse(SchedulingError):
    status_code = 400
    code = "slot_in_use"
    message = "Cannot delete this slot because it is booked. Please cancel the booking first."


class StudentInUse(SchedulingError):
    status_code = 400
    code = "student_in_use"
    message = "Cannot delete a student with an interview record"


# --- Conflicts ---


class SlotConflict(SchedulingError):
    status_code = 409
    code = "slot_conflict"
    message = "Slot was just booked by another user. Please select another slot."


class DuplicateInvitation(SchedulingError):
    status_code = 409
    code = "duplicate_invitation"
    message = "Student has already been invited"


class DuplicateEmail(SchedulingError):
    status_code = 409
    code = "duplicate_email"
    message = "Email already exists"


class DuplicateSlot(SchedulingError):
    status_code = 409
    code = "duplicate_slot"
    message = "A slot already exists at this date and time"


# --- Dependency failure ---


class DependencyFailure(SchedulingError):
    status_code = 503
    code = "dependency_failure"
    message = "The request could not be completed. Please try again."
