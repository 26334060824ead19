"""
Audit log model for tracking security-relevant activity.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Index
from kneecare.db.base import Base
from kneecare.models.lifecycle import utcnow


class AuditAction(str, enum.Enum):
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    PASSWORD_CHANGED = "password_changed"
    PROFILE_UPDATED = "profile_updated"
    RELATIONSHIP_CREATED = "relationship_created"
    RELATIONSHIP_UPDATED = "relationship_updated"
    RELATIONSHIP_ENDED = "relationship_ended"
    RELATIONSHIP_DELETED = "relationship_deleted"
    XRAY_UPLOADED = "xray_uploaded"
    XRAY_UPDATED = "xray_updated"
    XRAY_DELETED = "xray_deleted"
    AI_PREDICTION_GENERATED = "ai_prediction_generated"
    AI_PREDICTION_UPDATED = "ai_prediction_updated"
    AI_PREDICTION_DELETED = "ai_prediction_deleted"
    RECOMMENDATION_CREATED = "recommendation_created"
    RECOMMENDATION_UPDATED = "recommendation_updated"
    RECOMMENDATION_DELETED = "recommendation_deleted"
    MEDICATION_REMINDER_CREATED = "medication_reminder_created"
    MEDICATION_REMINDER_UPDATED = "medication_reminder_updated"
    MEDICATION_REMINDER_DELETED = "medication_reminder_deleted"
    MEDICATION_DOSE_LOGGED = "medication_dose_logged"
    ACTIVITY_LOGGED = "activity_logged"
    ACTIVITY_UPDATED = "activity_updated"
    ACTIVITY_DELETED = "activity_deleted"
    WEIGHT_LOGGED = "weight_logged"
    WEIGHT_UPDATED = "weight_updated"
    WEIGHT_DELETED = "weight_deleted"
    DIET_LOGGED = "diet_logged"
    DIET_UPDATED = "diet_updated"
    DIET_DELETED = "diet_deleted"
    CONSULTATION_SCHEDULED = "consultation_scheduled"
    CONSULTATION_UPDATED = "consultation_updated"
    CONSULTATION_CANCELLED = "consultation_cancelled"
    CONSULTATION_COMPLETED = "consultation_completed"
    CONSULTATION_DELETED = "consultation_deleted"
    MESSAGE_SENT = "message_sent"
    MESSAGE_READ = "message_read"
    MESSAGE_DELETED = "message_deleted"
    FORUM_POST_CREATED = "forum_post_created"
    FORUM_POST_UPDATED = "forum_post_updated"
    FORUM_POST_DELETED = "forum_post_deleted"
    FORUM_POST_LIKED = "forum_post_liked"
    FORUM_COMMENT_CREATED = "forum_comment_created"
    FORUM_COMMENT_UPDATED = "forum_comment_updated"
    FORUM_COMMENT_DELETED = "forum_comment_deleted"
    FORUM_COMMENT_LIKED = "forum_comment_liked"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_READ = "notification_read"
    NOTIFICATION_DELETED = "notification_deleted"
    KL_GRADE_CREATED = "kl_grade_created"
    KL_GRADE_UPDATED = "kl_grade_updated"
    KL_GRADE_DELETED = "kl_grade_deleted"
    KL_GRADES_INITIALIZED = "kl_grades_initialized"
    PROGRESS_REPORT_GENERATED = "progress_report_generated"
    PROGRESS_REPORT_DELETED = "progress_report_deleted"
    DISEASE_PROGRESSION_UPDATED = "disease_progression_updated"
    DISEASE_PROGRESSION_DELETED = "disease_progression_deleted"
    AUDIT_ENTRY_CREATED = "audit_entry_created"
    AUDIT_LOGS_CLEANED = "audit_logs_cleaned"
    DATA_EXPORTED = "data_exported"
    ERROR_OCCURRED = "error_occurred"


class AuditEntity(str, enum.Enum):
    USERS = "users"
    RELATIONSHIPS = "doctorPatientRelations"
    XRAY_IMAGES = "xrayImages"
    AI_PREDICTIONS = "aiPredictions"
    RECOMMENDATIONS = "recommendations"
    MEDICATION_REMINDERS = "medicationReminders"
    ACTIVITY_LOGS = "activityLogs"
    WEIGHT_LOGS = "weightLogs"
    DIET_LOGS = "dietLogs"
    CONSULTATIONS = "consultations"
    MESSAGES = "messages"
    FORUM_POSTS = "forumPosts"
    FORUM_COMMENTS = "forumComments"
    NOTIFICATIONS = "notifications"
    KL_GRADES = "klGrades"
    PROGRESS_REPORTS = "progressReports"
    DISEASE_PROGRESSION = "diseaseProgression"
    AUDIT_LOGS = "auditLogs"
    SYSTEM = "system"


class AuditStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    WARNING = "warning"


class AuditLog(Base):
    """Append-only audit entry."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_actor_timestamp", "actor_id", "timestamp"),
        Index("ix_audit_entity", "entity", "entity_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # No foreign key: entries outlive the identities they mention
    actor_id = Column(Integer, index=True)

    action = Column(String(64), nullable=False, index=True)
    entity = Column(String(64), nullable=False)
    entity_id = Column(String(64))
    changes = Column(JSON)

    # Request context
    ip_address = Column(String(45))
    user_agent = Column(String(500))
    session_id = Column(String(255))
    request_id = Column(String(255))
    details = Column("metadata", JSON)

    # Status and outcome
    status = Column(String(16), default=AuditStatus.SUCCESS.value, nullable=False)
    error_message = Column(String(1000))

    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor_id={self.actor_id}, status='{self.status}')>"

    @property
    def is_success(self) -> bool:
        """Check if the action was successful."""
        return self.status == AuditStatus.SUCCESS.value

    @property
    def is_failure(self) -> bool:
        """Check if the action failed."""
        return self.status == AuditStatus.FAILURE.value
