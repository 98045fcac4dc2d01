"""Task specs, the runner and the caller-facing desk."""

from familyoffice.tasks.desk import ResearchDesk
from familyoffice.tasks.runner import TaskRunner
from familyoffice.tasks.spec import TASK_SPECS, SessionPolicy, TaskFamily, TaskRequest, TaskSpec

__all__ = ["TASK_SPECS", "ResearchDesk", "SessionPolicy", "TaskFamily", "TaskRequest", "TaskRunner", "TaskSpec"]
