from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.attendance_record import AttendanceRecord, AttendanceStatus  # noqa: F401
from app.models.leave_request import LeaveDuration, LeaveRequest, LeaveStatus, LeaveType  # noqa: F401
from app.models.notification import Notification  # noqa: F401
from app.models.substitution_offer import (  # noqa: F401
    OPEN_OFFER_STATUSES,
    SubstitutionOffer,
    SubstitutionOfferStatus,
)
from app.models.substitution_vacancy import SubstitutionVacancy  # noqa: F401
from app.models.teacher import Teacher, TeacherRole, TeacherStatus  # noqa: F401
from app.models.timetable_period import WEEK_DAYS, TimetablePeriod  # noqa: F401
