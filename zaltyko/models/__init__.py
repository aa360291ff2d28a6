"""
Database Models

Every tenant-owned model carries tenant_id and is filtered by it
in each query that touches it.
"""
from zaltyko.models.user import User, UserRole
from zaltyko.models.academy import Academy, Membership
from zaltyko.models.billing import (
    Plan, PlanCode, Subscription, BillingEvent, BillingEventStatus, BillingInvoice
)
from zaltyko.models.athlete import Athlete, Coach
from zaltyko.models.group import Group, GroupAthlete
from zaltyko.models.schedule import (
    AcademyClass, ClassWeekday, ClassException, ClassSession, ClassEnrollment, AttendanceRecord
)
from zaltyko.models.charges import BillingItem, Charge, Discount, Scholarship
from zaltyko.models.event import Event, ContactMessage
from zaltyko.models.audit import AuditLog
from zaltyko.models.guardian import Guardian, GuardianAthlete
from zaltyko.models.notification import Notification, Invitation

__all__ = [
    "User", "UserRole",
    "Academy", "Membership",
    "Plan", "PlanCode", "Subscription", "BillingEvent", "BillingEventStatus", "BillingInvoice",
    "Athlete", "Coach",
    "Group", "GroupAthlete",
    "AcademyClass", "ClassWeekday", "ClassException", "ClassSession", "ClassEnrollment",
    "AttendanceRecord",
    "BillingItem", "Charge", "Discount", "Scholarship",
    "Event", "ContactMessage",
    "AuditLog",
    "Guardian", "GuardianAthlete",
    "Notification", "Invitation",
]
