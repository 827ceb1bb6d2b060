class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ScheduleConflictError(AppError):
    """Raised when a candidate entry cannot be committed at its (day, slot) cell.

    ``kind`` is one of ``teacher``, ``room``, ``break_slot`` or ``invalid_slot``.
    ``conflicting_entry`` describes the committed entry that blocked the candidate
    (when there is one) so callers can show who holds the resource.
    """

    kind = "conflict"

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 409,
        resource_id: str | None = None,
        conflicting_entry: dict | None = None,
        details: dict = None,
    ):
        payload = {"kind": self.kind}
        if resource_id is not None:
            payload["resource_id"] = resource_id
        if conflicting_entry is not None:
            payload["conflicting_entry"] = conflicting_entry
        payload.update(details or {})
        super().__init__(message, status_code=status_code, details=payload)
        self.resource_id = resource_id
        self.conflicting_entry = conflicting_entry


class TeacherConflictError(ScheduleConflictError):
    """A teacher is already booked at the target day/slot."""
    kind = "teacher"


class RoomConflictError(ScheduleConflictError):
    """A room is already booked at the target day/slot."""
    kind = "room"


class BreakSlotViolationError(ScheduleConflictError):
    kind = "break_slot"

    def __init__(self, slot_id: str, day_index: int | None = None):
        super().__init__(
            f"Time slot {slot_id} is a break and cannot hold a class",
            status_code=422,
            details={"slot_id": slot_id, "day_index": day_index},
        )


class InvalidSlotReferenceError(ScheduleConflictError):
    kind = "invalid_slot"

    def __init__(self, message: str, *, slot_id=None, day_index: int | None = None):
        details = {}
        if slot_id is not None:
            details["slot_id"] = str(slot_id)
        if day_index is not None:
            details["day_index"] = day_index
        super().__init__(message, status_code=422, details=details)


class GroupIntegrityViolationError(AppError):
    """Raised when an operation would split or corrupt a span, elective or lab-group unit."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details={"kind": "group_integrity", **(details or {})})


class InvalidAssignmentError(AppError):
    """Raised when an assignment request is well-formed but not meaningful (e.g. lab group on a lecture)."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"kind": "not_found", "resource_type": resource_type, "resource_id": resource_id},
        )
