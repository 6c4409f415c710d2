"""
Python enums for the workflow's string-valued columns.
Values are stored verbatim in the database and returned by the API.
"""

from enum import Enum


class Role(str, Enum):
    USER = "User"
    AGENT = "Agent"
    QA1 = "QA1"
    QA2 = "QA2"
    MONITOR = "Monitor"
    ADMIN = "Admin"


# The two reviewer pools. A reviewer's role doubles as their team tag.
QA_TEAMS = (Role.QA1.value, Role.QA2.value)
MANAGER_ROLES = (Role.MONITOR.value, Role.ADMIN.value)
UPLOADER_ROLES = (Role.USER.value, Role.AGENT.value, Role.MONITOR.value, Role.ADMIN.value)


class FileStatus(str, Enum):
    """Lifecycle of a file record. Only moves forward."""
    PROCESSING = "Processing"
    COMPLETED = "Completed"


class SoldStatus(str, Enum):
    SOLD = "Sold"
    UNSOLD = "Unsold"


class AssignmentStatus(str, Enum):
    ASSIGNED = "Assigned"
    COMPLETED = "Completed"


class ReviewStatus(str, Enum):
    """QA verdict. Business meaning only, not a workflow state."""
    PENDING = "Pending"
    OK = "OK"
    ISSUE = "Issue"


class AssignmentMode(str, Enum):
    CREATED = "created"
    REASSIGNED = "reassigned"


class AssetKind(str, Enum):
    AUDIO = "audio"
    TEXT = "text"
    REVIEW = "review"
