from __future__ import annotations

from enum import Enum


class IssuePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# Sort rank, higher is more pressing
PRIORITY_RANK = {
    IssuePriority.LOW: 0,
    IssuePriority.MEDIUM: 1,
    IssuePriority.HIGH: 2,
    IssuePriority.URGENT: 3,
}


class IssueStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


UNRESOLVED_STATUSES = (IssueStatus.OPEN, IssueStatus.IN_PROGRESS)
RESOLVED_STATUSES = (IssueStatus.RESOLVED, IssueStatus.CLOSED)


class MeetingStatus(str, Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class MeetingEndReason(str, Enum):
    MANUAL = "manual"
    INACTIVITY = "inactivity"
    MAX_DURATION = "max_duration"


class Vendor(str, Enum):
    CMIC = "CMIC"
    PROCORE = "PROCORE"
    OTHER = "OTHER"


class ZendeskStatus(str, Enum):
    NEW = "NEW"
    OPEN = "OPEN"
    PENDING = "PENDING"
    HOLD = "HOLD"
    SOLVED = "SOLVED"
    CLOSED = "CLOSED"


class ZendeskPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ZendeskTicketType(str, Enum):
    PROBLEM = "PROBLEM"
    INCIDENT = "INCIDENT"
    QUESTION = "QUESTION"
    TASK = "TASK"


class AttachmentStatus(str, Enum):
    UPLOADING = "UPLOADING"
    AVAILABLE = "AVAILABLE"
    DELETED = "DELETED"
