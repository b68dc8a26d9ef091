"""Client for the Qualtrics response export API.

A response export is a three step process:
1. Create export job (returns a progressId)
2. Poll the job until it is complete or failed (returns a fileId)
3. Download the export file
"""

import io
import json
import zipfile
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from databricks.labs.qualtrics_connector.libs.url_guard import validate_https_url
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_client import (
    QualtricsAPIClient,
    result_of,
)
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_errors import RemoteError
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_utils import (
    QualtricsConfig,
    get_logger,
)

logger = get_logger()


# =============================================================================
# Models
# =============================================================================

class ExportStatus(str, Enum):
    IN_PROGRESS = "inProgress"
    COMPLETE = "complete"
    FAILED = "failed"


class ExportRequest(BaseModel):
    """Parameters of one export request, with defaults already merged in."""

    model_config = ConfigDict(frozen=True)

    data_center: str
    survey_id: str
    options: dict[str, Any]

    @classmethod
    def build(
        cls, data_center: str, survey_id: str, options: Optional[dict] = None
    ) -> "ExportRequest":
        """Merge ``options`` over the default export options; caller keys win."""
        if not data_center:
            raise ValueError("data_center is required")
        if not survey_id:
            raise ValueError("survey_id is required")
        merged = {**QualtricsConfig.DEFAULT_EXPORT_OPTIONS, **(options or {})}
        return cls(data_center=data_center, survey_id=survey_id, options=merged)

    @property
    def url(self) -> str:
        return export_url(self.data_center, self.survey_id)

    def body(self) -> dict:
        return dict(self.options)


class ExportJob(BaseModel):
    """Snapshot of an export job. Each status check produces a new one."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    progress_id: str = Field(alias="progressId")
    status: ExportStatus = ExportStatus.IN_PROGRESS
    percent_complete: float = Field(default=0, alias="percentComplete")
    file_id: Optional[str] = Field(default=None, alias="fileId")

    @field_validator("status", mode="before")
    @classmethod
    def _non_terminal_is_in_progress(cls, value: Any) -> Any:
        # Anything other than complete/failed means the job is still running.
        if value in (ExportStatus.COMPLETE.value, ExportStatus.FAILED.value):
            return value
        return ExportStatus.IN_PROGRESS

    @field_validator("percent_complete", mode="before")
    @classmethod
    def _percent_default(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def is_terminal(self) -> bool:
        return self.status in (ExportStatus.COMPLETE, ExportStatus.FAILED)


class ResponseRecord(BaseModel):
    """One survey response: its id and a sparse mapping of field key to value."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    response_id: str = Field(alias="responseId")
    values: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_response_id(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        values = data.get("values") or {}
        data["values"] = values
        # Qualtrics sometimes only puts the id in values._recordId
        if not data.get("responseId") and not data.get("response_id") and "_recordId" in values:
            record_id = values["_recordId"]
            data["responseId"] = (
                record_id.get("textEntry") if isinstance(record_id, dict) else record_id
            )
        return data


class ExportFile(BaseModel):
    """Decoded contents of a finished export."""

    model_config = ConfigDict(frozen=True)

    responses: list[ResponseRecord] = Field(default_factory=list)


# =============================================================================
# URLs
# =============================================================================

def export_url(data_center: str, survey_id: str) -> str:
    return f"{QualtricsConfig.base_url(data_center)}/surveys/{survey_id}/export-responses"


def export_progress_url(data_center: str, survey_id: str, progress_id: str) -> str:
    return f"{export_url(data_center, survey_id)}/{progress_id}"


def export_file_url(data_center: str, survey_id: str, file_id: str) -> str:
    return f"{export_url(data_center, survey_id)}/{file_id}/file"


# =============================================================================
# Client
# =============================================================================

class QualtricsExportClient:
    """Start, poll and download Qualtrics response exports."""

    def __init__(self, api_client: QualtricsAPIClient) -> None:
        self.api_client = api_client

    def start(
        self, data_center: str, survey_id: str, options: Optional[dict] = None
    ) -> ExportJob:
        """
        Create a response export job.

        Args:
            data_center: Datacenter identifier (e.g. 'fra1')
            survey_id: Survey ID to export responses from
            options: Export options merged over {"format": "json", "compress": False}

        Returns:
            Initial snapshot of the export job

        Raises:
            RemoteError: If the request fails or no progressId is returned
        """
        export_request = ExportRequest.build(data_center, survey_id, options)
        url = validate_https_url(export_request.url)

        logger.info(f"Creating response export for survey {survey_id}")
        payload = self.api_client.request_json("POST", url, json_body=export_request.body())
        result = result_of(payload, f"export request for survey {survey_id}")
        if not result.get("progressId"):
            raise RemoteError(
                f"Failed to create response export for survey {survey_id}: no progressId returned"
            )

        job = _parse_model(ExportJob, result, f"export job for survey {survey_id}")
        logger.info(f"Export {job.progress_id} created for survey {survey_id}")
        return job

    def poll(
        self, data_center: str, survey_id: str, progress_id: str, attempt: int = 0
    ) -> Optional[ExportJob]:
        """
        Check the export progress once.

        Args:
            data_center: Datacenter identifier
            survey_id: Survey ID
            progress_id: Progress ID from export creation
            attempt: Index of this check; checks after the first are sent as retries

        Returns:
            The job snapshot once it is complete or failed, None while in progress
        """
        url = export_progress_url(data_center, survey_id, progress_id)
        payload = self.api_client.request_json("GET", url, is_retry=attempt > 0)
        result = result_of(payload, f"export status {progress_id}")

        job = _parse_model(
            ExportJob, {"progressId": progress_id, **result}, f"export status {progress_id}"
        )
        logger.debug(
            f"Export {progress_id}: status={job.status.value}, "
            f"{job.percent_complete}% complete (check {attempt + 1})"
        )
        return job if job.is_terminal else None

    def download(self, data_center: str, survey_id: str, file_id: str) -> ExportFile:
        """
        Download and decode the export file.

        Compressed exports arrive as a ZIP holding one JSON file; uncompressed
        exports are the JSON document itself.

        Args:
            data_center: Datacenter identifier
            survey_id: Survey ID
            file_id: File ID from the completed export

        Returns:
            ExportFile with the responses in file order

        Raises:
            RemoteError: If the request fails or the file cannot be decoded
        """
        url = validate_https_url(export_file_url(data_center, survey_id, file_id))
        response = self.api_client.request(
            "GET",
            url,
            timeout=self.api_client.request_timeout * QualtricsConfig.DOWNLOAD_TIMEOUT_MULTIPLIER,
        )

        data = _decode_export_content(response.content)
        if not isinstance(data, dict):
            raise RemoteError(f"Export file {file_id} is not a JSON object")

        export_file = _parse_model(
            ExportFile, {"responses": data.get("responses") or []}, f"export file {file_id}"
        )
        logger.info(
            f"Downloaded {len(export_file.responses)} responses for survey {survey_id}"
        )
        return export_file


def _decode_export_content(content: bytes) -> Any:
    try:
        if zipfile.is_zipfile(io.BytesIO(content)):
            with zipfile.ZipFile(io.BytesIO(content)) as zip_content:
                json_files = [f for f in zip_content.namelist() if f.endswith(".json")]
                if not json_files:
                    raise RemoteError("No JSON file found in export ZIP")
                content = zip_content.read(json_files[0])
        return json.loads(content)
    except (ValueError, zipfile.BadZipFile) as e:
        raise RemoteError(f"Failed to decode response export: {e}") from e


def _parse_model(model_cls, data: dict, what: str):
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise RemoteError(f"Unexpected response shape for {what}: {e}") from e
