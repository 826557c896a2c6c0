from leadflow.documents.models import DocumentRequirement, LeadDocument
from leadflow.reminders.models import Reminder, ReminderAlert
from leadflow.users.models import AppUser
from leadflow.workflow.models import LeadProcess, LeadStage

__all__ = [
    "AppUser",
    "DocumentRequirement",
    "LeadDocument",
    "LeadProcess",
    "LeadStage",
    "Reminder",
    "ReminderAlert",
]
