from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.cell_claim import CellClaim  # noqa: F401
from app.models.resource_booking import ResourceBooking, ResourceKind  # noqa: F401
from app.models.routine_slot import ClassType, LabGroup, RoutineSlot  # noqa: F401
from app.models.time_slot import DayType, TimeSlot  # noqa: F401
