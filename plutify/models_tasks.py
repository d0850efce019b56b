"""
Task Models
Tasks, their append-only history/child rows, and reusable task templates
"""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class TaskStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_REVIEW = "PENDING_REVIEW"
    NEEDS_REVISION = "NEEDS_REVISION"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TaskType(str, Enum):
    DOCUMENT_UPLOAD = "DOCUMENT_UPLOAD"
    INTEGRATION = "INTEGRATION"
    ACTION = "ACTION"
    REVIEW = "REVIEW"


class TaskPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IntegrationType(str, Enum):
    QUICKBOOKS = "QUICKBOOKS"
    SHOPIFY = "SHOPIFY"
    AMAZON = "AMAZON"


class ActionCategory(str, Enum):
    CLIENT_ACTION = "CLIENT_ACTION"
    STAFF_ACTION = "STAFF_ACTION"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(String(2000), nullable=False)
    task_type = Column(String(30), nullable=False, index=True)
    status = Column(String(30), nullable=False, default=TaskStatus.NOT_STARTED.value, index=True)
    priority = Column(String(10), nullable=False, default=TaskPriority.MEDIUM.value)

    # Assignment
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_to_role = Column(String(10), nullable=False)  # CLIENT, STAFF, ADMIN
    client_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    due_date = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)

    # Template this task was created from
    template_id = Column(Integer, ForeignKey("task_templates.id"), nullable=True, index=True)
    template_name = Column(String(200), nullable=True)

    # Type-specific fields
    document_type = Column(String(100), nullable=True)  # DOCUMENT_UPLOAD
    action_category = Column(String(20), nullable=True)  # ACTION
    integration_type = Column(String(20), nullable=True)  # INTEGRATION
    integration_status = Column(String(30), nullable=True)
    integration_connected_at = Column(DateTime, nullable=True)

    # Review
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    # Reminder bookkeeping
    due_soon_sent = Column(Boolean, default=False, nullable=False)
    last_overdue_reminder_sent = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    assignee = relationship("User", foreign_keys=[assigned_to])
    client = relationship("User", foreign_keys=[client_id])
    staff = relationship("User", foreign_keys=[staff_id])
    template = relationship("TaskTemplate", back_populates="tasks")

    documents = relationship(
        "TaskDocument",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskDocument.id",
    )
    help_requests = relationship(
        "TaskHelpRequest",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskHelpRequest.id",
    )
    status_history = relationship(
        "TaskStatusHistory",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskStatusHistory.id",
    )
    assignment_history = relationship(
        "TaskAssignmentHistory",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskAssignmentHistory.id",
    )


class TaskDocument(Base):
    __tablename__ = "task_documents"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime, nullable=False)

    task = relationship("Task", back_populates="documents")


class TaskStatusHistory(Base):
    """Audit trail of status changes - rows are only ever inserted"""

    __tablename__ = "task_status_history"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    status = Column(String(30), nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    changed_at = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)

    task = relationship("Task", back_populates="status_history")


class TaskHelpRequest(Base):
    __tablename__ = "task_help_requests"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    requested_at = Column(DateTime, nullable=False)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    task = relationship("Task", back_populates="help_requests")


class TaskAssignmentHistory(Base):
    __tablename__ = "task_assignment_history"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_at = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)

    task = relationship("Task", back_populates="assignment_history")


class TaskTemplate(Base):
    __tablename__ = "task_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    category = Column(String(30), nullable=False, index=True)
    task_type = Column(String(30), nullable=False)

    document_type = Column(String(100), nullable=True)
    integration_type = Column(String(20), nullable=True)
    action_category = Column(String(20), nullable=True)

    default_priority = Column(String(10), nullable=False, default=TaskPriority.MEDIUM.value)
    default_due_in_days = Column(Integer, nullable=False, default=7)

    # SYSTEM = built-in, ORGANIZATION = shared with admins/staff, PRIVATE = creator only
    visibility = Column(String(20), nullable=False, default="ORGANIZATION", index=True)
    available_for = Column(JSON, nullable=False, default=lambda: ["ADMIN", "STAFF"])

    is_system_template = Column(Boolean, default=False, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    usage_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("User")
    tasks = relationship("Task", back_populates="template")
