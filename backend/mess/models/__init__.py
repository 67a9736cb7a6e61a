from .base import MealType, DayOfWeek, DisputeStatus, enum_by_value
from .User import User, Role, TokenBlocklist, ADMIN_ROLE, TEACHER_ROLE
from .AuditLog import AuditLog
from .Teacher import Teacher
from .AttendanceRecord import AttendanceRecord
from .Bill import Bill
from .BillingConfiguration import BillingConfiguration, SINGLETON_ID
from .AttendanceDispute import AttendanceDispute
from .MenuItem import MenuItem
