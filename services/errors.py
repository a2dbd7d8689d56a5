"""Exceptions raised by the expense service layer."""


class ExpenseServiceError(Exception):
    """Base class for expense service failures."""


class StoreUnavailable(ExpenseServiceError):
    """The backing document store could not be reached or failed the request."""


class MappingError(ExpenseServiceError):
    """A stored document could not be converted into an Expense."""

    def __init__(self, document_id, reason):
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"Cannot map document {document_id}: {reason}")
