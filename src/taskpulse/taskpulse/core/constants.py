"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MS_PER_HOUR = 60 * 60 * 1000

TASK_TITLE_MAX_LENGTH = 200
TASK_DESCRIPTION_MAX_LENGTH = 2000
COMMENT_MAX_LENGTH = 1000
DEFAULT_CATEGORY = "general"

# Designation that grants an employee project-manager capabilities.
PROJECT_MANAGER_DESIGNATION = "project_manager"
SALES_DESIGNATION = "sales"

COMPLETED_SESSION_NOTE = "Task completed"
REMOVED_SESSION_NOTE = "Removed from task"
OVERDUE_REASON = "Past due date"
DEFAULT_STATUS_REASON = "Status updated"

DEFAULT_TOP_PERFORMERS = 5
DEFAULT_HISTORY_LIMIT = 12

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
