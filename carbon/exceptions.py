"""
Exception taxonomy for the carbon scoring engine.
The API layer maps these onto the standard error envelope in api/error_utils.py.
"""


class CarbonError(Exception):
    """Base class for all scoring and settlement errors."""


class InvalidInputError(CarbonError, ValueError):
    """A caller broke a precondition (empty selection, negative kg, bad policy)."""


class InvalidOptionError(InvalidInputError):
    """An option value is not part of its survey dimension."""

    def __init__(self, dimension, value):
        self.dimension = dimension
        self.value = value
        super().__init__(f"Unknown {dimension} option: {value!r}")


class ExternalServiceDegraded(CarbonError):
    """The AI footprint service failed or timed out."""


class MalformedExternalResponse(CarbonError):
    """The AI footprint service returned something that is not a JSON object."""


class BalanceStoreUnavailable(CarbonError):
    """A point balance write could not be committed. Safe to retry."""


class SurveyCooldownActive(CarbonError):
    def __init__(self, retry_after_seconds):
        self.retry_after_seconds = int(retry_after_seconds)
        super().__init__(f"Carbon survey already submitted, retry in {self.retry_after_seconds}s")


class SubmissionNotFound(CarbonError):
    def __init__(self, submission_id):
        self.submission_id = submission_id
        super().__init__(f"Carbon submission {submission_id} not found")
