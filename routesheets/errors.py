"""
Exceptions raised by ingestion and route generation.
"""

from routesheets.models import Diagnostic


class RouteGenerationError(Exception):
    """
    Base class for errors that stop a whole generation run.
    """


class NoEventsError(RouteGenerationError):
    def __init__(self, message: str = "No events were loaded; load the events table to continue.") -> None:
        super().__init__(message)


class NoMatchingEventsError(RouteGenerationError):
    """
    The run finished without producing any route sheet. Usually the
    municipality names of the input do not match the zone mapping table.
    """

    def __init__(
        self,
        target_zone: str = "all",
        diagnostics: list[Diagnostic] | None = None,
    ) -> None:
        self.target_zone = target_zone
        self.diagnostics = list(diagnostics or [])
        super().__init__(
            f"No events found to process for zone '{target_zone}'. Check that "
            "the municipalities in the events file match the zone mapping "
            "configuration."
        )


class RowValidationError(ValueError):
    """
    A single input row that cannot be turned into a record.
    """

    def __init__(self, row_index: int, message: str) -> None:
        self.row_index = row_index
        self.message = message
        super().__init__(f"row {row_index}: {message}")


class EmptyInputError(ValueError):
    pass
