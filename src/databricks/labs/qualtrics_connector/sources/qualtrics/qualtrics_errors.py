"""Exceptions raised by the Qualtrics connector."""

from typing import Optional

from databricks.labs.qualtrics_connector.libs.url_guard import InvalidSchemeError


class QualtricsError(Exception):
    """Base class for Qualtrics connector errors."""


class RemoteError(QualtricsError):
    """The Qualtrics API answered with a non-success status or an unusable body."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        if error_message:
            message = f"{message}: {error_message}"
        super().__init__(message)
        self.status_code = status_code
        self.error_message = error_message


class ExportFailed(QualtricsError):
    """The export job reached the 'failed' status."""

    def __init__(self, survey_id: str, progress_id: str) -> None:
        super().__init__(f"Response export {progress_id} for survey {survey_id} failed")
        self.survey_id = survey_id
        self.progress_id = progress_id


class ExportTimedOut(QualtricsError):
    """The export job did not finish within the polling budget."""

    def __init__(self, survey_id: str, progress_id: str, attempts: int, interval: float) -> None:
        super().__init__(
            f"Response export {progress_id} for survey {survey_id} did not complete "
            f"after {attempts} status checks {interval}s apart"
        )
        self.survey_id = survey_id
        self.progress_id = progress_id
        self.attempts = attempts


class SchemaMismatch(QualtricsError):
    """A response outside the schema sample introduced fields the sample did not have."""

    def __init__(self, row_index: int, unseen_fields: list[str]) -> None:
        super().__init__(
            f"Response at index {row_index} has fields not present in the schema sample: "
            f"{', '.join(unseen_fields)}"
        )
        self.row_index = row_index
        self.unseen_fields = unseen_fields


__all__ = [
    "QualtricsError",
    "RemoteError",
    "ExportFailed",
    "ExportTimedOut",
    "SchemaMismatch",
    "InvalidSchemeError",
]
