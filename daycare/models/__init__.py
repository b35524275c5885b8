"""Database models for the daycare management system."""

from daycare.models.attendance import ABSENCE_STATUSES, Attendance, AttendanceStatus
from daycare.models.audit_log import AuditLog
from daycare.models.child import BillingCycle, Child, ChildStatus, EmergencyContact
from daycare.models.document import Document
from daycare.models.family import Family
from daycare.models.invoice import (
    CreditType,
    Invoice,
    InvoiceStatus,
    ParentCredit,
    Payment,
    PricingMode,
)
from daycare.models.message import Message
from daycare.models.parent import Parent, ParentChild
from daycare.models.payroll import (
    PayPeriod,
    PayPeriodStatus,
    Payout,
    TimeEntry,
    TimeEntryStatus,
)
from daycare.models.schedule import Schedule, ScheduleStatus
from daycare.models.time_off import TimeOffRequest, TimeOffStatus, TimeOffType
from daycare.models.user import PayFrequency, PaymentType, User, UserRole

__all__ = [
    "User",
    "UserRole",
    "PaymentType",
    "PayFrequency",
    "Family",
    "Parent",
    "ParentChild",
    "Child",
    "ChildStatus",
    "BillingCycle",
    "EmergencyContact",
    "Invoice",
    "InvoiceStatus",
    "PricingMode",
    "Payment",
    "ParentCredit",
    "CreditType",
    "PayPeriod",
    "PayPeriodStatus",
    "Payout",
    "TimeEntry",
    "TimeEntryStatus",
    "Schedule",
    "ScheduleStatus",
    "TimeOffRequest",
    "TimeOffStatus",
    "TimeOffType",
    "Attendance",
    "AttendanceStatus",
    "ABSENCE_STATUSES",
    "Document",
    "Message",
    "AuditLog",
]
