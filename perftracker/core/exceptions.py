"""
Domain exceptions raised by the deep-dive pipeline.

Routers translate these into HTTP responses:
- InputValidationError -> 400 with {"field", "message"}
- DataSourceError -> 502
"""


class PerfTrackerError(Exception):
    """Base class for service errors."""


class InputValidationError(PerfTrackerError):
    """
    A request parameter is malformed.

    Raised before any warehouse query is issued.

    Attributes:
        field: Name of the offending request field.
        message: Human readable explanation.
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class DataSourceError(PerfTrackerError):
    """
    The warehouse or relational store failed (query error, timeout, auth).

    Attributes:
        source: Which backend failed ('bigquery', 'postgres').
        message: Underlying error description.
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
