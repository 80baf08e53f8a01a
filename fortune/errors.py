"""
Exceptions raised by the chart engine and its collaborators.

All of them are ValueError subclasses: they signal a precondition the caller
broke, never a transient failure, so nothing here is retried.
"""


class InvalidCalendarDate(ValueError):
    """The year/month/day combination does not exist (e.g. Feb 30)."""


class InvalidTimeOfDay(ValueError):
    """Hour or minute out of range while the birth time is marked known."""


class InvalidUserContext(ValueError):
    """A report option is missing, unknown, or out of its allowed range."""


class ResultIntegrityError(ValueError):
    """A stored result no longer matches its integrity hash."""
