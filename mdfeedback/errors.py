"""Exceptions raised by the collaborator layer (file I/O and mutations)."""


class FeedbackError(Exception):
    """Base class for md-feedback errors."""
    pass


class DocumentIOError(FeedbackError):
    """Raised when a markdown file cannot be read or written."""

    def __init__(self, path, message: str):
        super().__init__(f"{message}: {path}")
        self.path = str(path)


class MemoNotFoundError(FeedbackError):
    """Raised when a mutation names a memo id absent from the document."""

    def __init__(self, memo_id: str):
        super().__init__(f"Memo not found: {memo_id}")
        self.memo_id = memo_id


class InvalidValueError(FeedbackError, ValueError):
    """Raised when a status, owner or gate type is not an allowed value."""

    def __init__(self, field_name: str, value, allowed):
        super().__init__(
            f"Invalid {field_name} {value!r}; expected one of: {', '.join(allowed)}"
        )
        self.field_name = field_name
        self.value = value
