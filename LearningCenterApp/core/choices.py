"""Typed enumerations (TextChoices) for roles, workflow states and categories."""
from django.db import models

class UserRole(models.TextChoices):
    """System-level role assigned to a user account."""
    STUDENT = "STUDENT", "Student"
    TEACHER = "TEACHER", "Teacher"
    ADMIN = "ADMIN", "Admin"

class SubmissionStatus(models.TextChoices):
    """Lifecycle states for an assignment submission."""
    PENDING = "PENDING", "Pending"
    SUBMITTED = "SUBMITTED", "Submitted"
    GRADED = "GRADED", "Graded"

class AssignmentType(models.TextChoices):
    ESSAY = "essay", "Essay"
    EXERCISE = "exercise", "Exercise"
    QUIZ = "quiz", "Quiz"
    RECORDING = "recording", "Recording"
    OTHER = "other", "Other"

class AssignmentStatus(models.TextChoices):
    """Display status derived from due date, submission and grade."""
    PENDING = "pending", "Pending"
    SUBMITTED = "submitted", "Submitted"
    COMPLETED = "completed", "Completed"
    OVERDUE = "overdue", "Overdue"

class EnrollmentRequestStatus(models.TextChoices):
    """States of a student-initiated request to join a class."""
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"

class LearningMethod(models.TextChoices):
    ONLINE = "ONLINE", "Online"
    IN_PERSON = "IN_PERSON", "In-Person"
    BLENDED = "BLENDED", "Blended"

class AttendanceStatus(models.TextChoices):
    PRESENT = "present", "Present"
    ABSENT = "absent", "Absent"

class MeetingType(models.TextChoices):
    ONE_ON_ONE = "ONE_ON_ONE", "One-on-one"
    GROUP = "GROUP", "Group"

class MeetingStatus(models.TextChoices):
    OPEN = "open", "Open"
    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"
    COMPLETED = "completed", "Completed"

class NotificationType(models.TextChoices):
    ASSIGNMENT = "ASSIGNMENT", "Assignment"
    SUBMISSION = "SUBMISSION", "Submission"
    MEETING = "MEETING", "Meeting"
    ENROLLMENT = "ENROLLMENT", "Enrollment"
    SYSTEM = "SYSTEM", "System"
