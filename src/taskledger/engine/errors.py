"""TaskLedger engine errors."""


class TaskLedgerError(Exception):
    """Base error for TaskLedger operations."""

    def __init__(self, message: str, code: str = "TASKLEDGER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(TaskLedgerError):
    """Malformed input."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class NotFoundError(TaskLedgerError):
    """Referenced entity is absent or soft-deleted."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}", "NOT_FOUND")
        self.entity = entity
        self.entity_id = entity_id


class TaskNotFound(NotFoundError):
    """Task does not exist."""

    def __init__(self, task_id: str):
        super().__init__("Task", task_id)
        self.task_id = task_id


class UserNotFound(NotFoundError):
    """User does not exist, is deleted, or is inactive."""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)
        self.user_id = user_id


class CategoryNotFound(NotFoundError):
    """Category does not exist or is not usable by the owner."""

    def __init__(self, category_id: str):
        super().__init__("Category", category_id)
        self.category_id = category_id


class ConflictError(TaskLedgerError):
    """Operation blocked by a business rule or uniqueness constraint."""

    def __init__(self, message: str):
        super().__init__(message, "CONFLICT")
