"""
Database models
"""
from storeclock.models.user import User
from storeclock.models.store import Store, Membership, MembershipRole, StoreSecret
from storeclock.models.time_entry import TimeEntry, TimeEntryType, TimeEntryStatus
from storeclock.models.audit_log import AuditLog

__all__ = [
    "User",
    "Store",
    "Membership",
    "MembershipRole",
    "StoreSecret",
    "TimeEntry",
    "TimeEntryType",
    "TimeEntryStatus",
    "AuditLog",
]
