import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, Optional

import requests
from pyspark.sql.types import StructType

from databricks.labs.qualtrics_connector.interface import LakeflowConnect
from databricks.labs.qualtrics_connector.libs.polling import constant_interval, wait_for
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_client import QualtricsAPIClient
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_errors import (
    ExportFailed,
    ExportTimedOut,
    RemoteError,
)
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_export import (
    ExportStatus,
    QualtricsExportClient,
)
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_questions import (
    QuestionMetadataClient,
)
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_schemas import (
    SUPPORTED_TABLES,
    TABLE_METADATA,
    TABLE_SCHEMAS,
    result_table_schema,
    to_spark_value,
)
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_table import (
    ResultTable,
    normalize_responses,
)
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_utils import (
    QualtricsConfig,
    get_logger,
    parse_bool_option,
    parse_json_option,
)

logger = get_logger()


class QualtricsExportOrchestrator:
    """
    Runs a response export end to end and returns the responses as a table.

    Steps:
    1. Create export job
    2. Poll for completion (fixed interval, bounded number of checks)
    3. Download the export file
    4. Flatten responses into a table
    5. Optionally relabel columns with question text
    """

    def __init__(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        export_client: QualtricsExportClient,
        question_client: QuestionMetadataClient,
        poll_interval: float = QualtricsConfig.EXPORT_POLL_INTERVAL,
        max_poll_attempts: int = QualtricsConfig.MAX_EXPORT_POLL_ATTEMPTS,
        schema_sample_size: int = QualtricsConfig.SCHEMA_SAMPLE_SIZE,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.export_client = export_client
        self.question_client = question_client
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.schema_sample_size = schema_sample_size
        self._sleep = sleep

    def get_survey_responses(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        data_center: str,
        survey_id: str,
        rename_columns: bool = False,
        options: Optional[dict] = None,
        strict_schema: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> ResultTable:
        """
        Export the responses of a survey.

        Args:
            data_center: Datacenter identifier (e.g. 'fra1')
            survey_id: The survey ID to export responses from
            rename_columns: Relabel question columns with their question text
            options: Export options passed through to the export request
            strict_schema: Raise SchemaMismatch instead of dropping fields that
                are missing from the schema sample
            cancel_event: Setting this event stops polling with PollingCancelled

        Returns:
            ResultTable with one row per response

        Raises:
            InvalidSchemeError: If an endpoint URL is not https
            RemoteError: If a request fails or returns an unusable body
            ExportFailed: If Qualtrics reports the export as failed
            ExportTimedOut: If the export is still running after the last check
        """
        # Question labels may change between exports; only reuse them within one.
        self.question_client.forget_column_renames(data_center, survey_id)

        job = self.export_client.start(data_center, survey_id, options)
        progress_id = job.progress_id

        final_job = wait_for(
            lambda attempt: self.export_client.poll(data_center, survey_id, progress_id, attempt),
            constant_interval(self.poll_interval),
            self.max_poll_attempts,
            sleep=self._sleep,
            cancel_event=cancel_event,
        )
        if final_job is None:
            raise ExportTimedOut(survey_id, progress_id, self.max_poll_attempts, self.poll_interval)
        if final_job.status == ExportStatus.FAILED:
            raise ExportFailed(survey_id, progress_id)
        if not final_job.file_id:
            raise RemoteError(f"Export {progress_id} complete but no fileId returned")

        if not rename_columns:
            export_file = self.export_client.download(data_center, survey_id, final_job.file_id)
            return normalize_responses(
                export_file.responses, self.schema_sample_size, strict_schema
            )

        # Question metadata is independent of the export file, fetch both at once.
        with ThreadPoolExecutor(max_workers=1) as executor:
            renames_future = executor.submit(
                self.question_client.get_column_renames, data_center, survey_id
            )
            export_file = self.export_client.download(data_center, survey_id, final_job.file_id)
            table = normalize_responses(
                export_file.responses, self.schema_sample_size, strict_schema
            )
            renames = renames_future.result()

        return table.rename(renames)


class QualtricsLakeflowConnect(LakeflowConnect):
    def __init__(
        self,
        options: dict[str, str],
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Initialize the Qualtrics source connector with authentication parameters.

        Args:
            options: Dictionary containing:
                - api_token: Qualtrics API token
                - datacenter_id: Datacenter identifier (e.g., 'fra1', 'ca1',
                  'yourdatacenterid')
            session: Optional requests.Session, mainly for testing
        """
        self.api_token = options.get("api_token")
        self.datacenter_id = options.get("datacenter_id")

        if not self.api_token:
            raise ValueError("api_token is required")
        if not self.datacenter_id:
            raise ValueError("datacenter_id is required")

        api_client = QualtricsAPIClient(self.api_token, session=session)
        self.orchestrator = QualtricsExportOrchestrator(
            QualtricsExportClient(api_client),
            QuestionMetadataClient(api_client),
        )

        # The export is expensive; schema discovery and reading share one run.
        self._tables: dict[tuple, ResultTable] = {}

    def list_tables(self) -> list[str]:
        """
        List all available tables supported by this connector.

        Returns:
            List of table names
        """
        return SUPPORTED_TABLES.copy()

    def get_table_schema(
        self, table_name: str, table_options: dict[str, str]
    ) -> StructType:
        """
        Get the schema for the specified table.

        Response columns depend on the survey, so with a surveyId the
        responses are exported and the schema is taken from them.

        Args:
            table_name: Name of the table
            table_options: Table options (surveyId, renameColumns, exportOptions)

        Returns:
            StructType representing the table schema
        """
        self._check_table(table_name)
        if not _survey_id(table_options):
            return TABLE_SCHEMAS[table_name]
        return result_table_schema(self._export(table_options))

    def read_table_metadata(
        self, table_name: str, table_options: dict[str, str]
    ) -> dict:
        """
        Get metadata for the specified table.

        Returns:
            Dictionary containing primary_keys, cursor_field, and ingestion_type
        """
        self._check_table(table_name)
        return TABLE_METADATA[table_name]

    def read_table(
        self, table_name: str, start_offset: dict, table_options: dict[str, str]
    ) -> (Iterator[dict], dict):
        """
        Read the survey responses as a full snapshot.

        Args:
            table_name: Name of the table to read
            start_offset: Ignored, every read is a full export
            table_options: Must contain 'surveyId'

        Returns:
            Tuple of (iterator of records, empty end offset)
        """
        self._check_table(table_name)
        if not _survey_id(table_options):
            raise ValueError("table_options must contain 'surveyId'")

        table = self._export(table_options)
        records = (
            {name: to_spark_value(value) for name, value in record.items()}
            for record in table.to_records()
        )
        return records, {}

    def _check_table(self, table_name: str) -> None:
        if table_name not in SUPPORTED_TABLES:
            raise ValueError(
                f"Unsupported table: {table_name}. Supported tables are: {SUPPORTED_TABLES}"
            )

    def _export(self, table_options: dict[str, str]) -> ResultTable:
        survey_id = _survey_id(table_options)
        rename_columns = parse_bool_option(table_options.get("renameColumns"))
        strict_schema = parse_bool_option(table_options.get("strictSchema"))
        export_options = parse_json_option(table_options.get("exportOptions"), "exportOptions")

        cache_key = (survey_id, rename_columns, strict_schema, repr(sorted(export_options.items())))
        if cache_key not in self._tables:
            logger.info(f"Exporting responses for survey {survey_id}")
            self._tables[cache_key] = self.orchestrator.get_survey_responses(
                self.datacenter_id,
                survey_id,
                rename_columns=rename_columns,
                options=export_options,
                strict_schema=strict_schema,
            )
        return self._tables[cache_key]


def _survey_id(table_options: dict[str, str]) -> Optional[str]:
    survey_id = table_options.get("surveyId") or table_options.get("surveyid")
    return survey_id.strip() if survey_id else None


def get_survey_responses(  # pylint: disable=too-many-arguments,too-many-positional-arguments
    api_token: str,
    data_center: str,
    survey_id: str,
    rename_columns: bool = False,
    options: Optional[dict] = None,
    session: Optional[requests.Session] = None,
) -> ResultTable:
    """Export the responses of one survey without going through the connector interface."""
    api_client = QualtricsAPIClient(api_token, session=session)
    orchestrator = QualtricsExportOrchestrator(
        QualtricsExportClient(api_client),
        QuestionMetadataClient(api_client),
    )
    return orchestrator.get_survey_responses(
        data_center, survey_id, rename_columns=rename_columns, options=options
    )
