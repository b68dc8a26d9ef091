"""Survey question metadata and the column labels derived from it."""

import threading
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

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

TEXT_ENTRY_TYPE = "TE"
MATRIX_TYPE = "Matrix"

ColumnRenameMap = list[tuple[str, str]]


class QuestionChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    display: str = Field(default="", alias="Display")

    @classmethod
    def from_api(cls, data: Any) -> "QuestionChoice":
        # The questions endpoint uses "Display"; older payloads use "display".
        if isinstance(data, dict) and "Display" not in data and "display" in data:
            data = {"Display": data["display"]}
        return cls.model_validate(data)


class QuestionDef(BaseModel):
    """A survey question as returned by the survey-definitions API."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    question_id: str = Field(alias="QuestionID")
    question_text: str = Field(default="", alias="QuestionText")
    question_type: str = Field(default="", alias="QuestionType")
    choices: Optional[dict[str, QuestionChoice]] = Field(default=None, alias="Choices")

    @classmethod
    def from_api(cls, data: dict) -> "QuestionDef":
        data = dict(data)
        choices = data.get("Choices")
        if isinstance(choices, dict):
            data["Choices"] = {
                str(key): QuestionChoice.from_api(value) for key, value in choices.items()
            }
        elif choices is not None:
            # Surveys without choices send an empty list instead of an object.
            data["Choices"] = None
        return cls.model_validate(data)

    def column_renames(self) -> ColumnRenameMap:
        """Field keys this question produces in a response export, with their labels."""
        if self.question_type == TEXT_ENTRY_TYPE:
            return [(f"{self.question_id}_TEXT", self.question_text)]
        if self.question_type == MATRIX_TYPE:
            return [
                (f"{self.question_id}_{choice_key}", choice.display)
                for choice_key, choice in (self.choices or {}).items()
            ]
        return [(self.question_id, self.question_text)]


def questions_url(data_center: str, survey_id: str) -> str:
    return f"{QualtricsConfig.base_url(data_center)}/survey-definitions/{survey_id}/questions"


class QuestionMetadataClient:
    """
    Fetch survey questions and derive export column labels from them.

    Column renames are cached per (data_center, survey_id) until
    ``forget_column_renames`` is called. The export orchestrator calls it at
    the start of every export, so one export never sees labels fetched by
    an earlier one.
    """

    def __init__(self, api_client: QualtricsAPIClient) -> None:
        self.api_client = api_client
        self._renames_cache: dict[tuple[str, str], ColumnRenameMap] = {}
        self._lock = threading.Lock()

    def get_questions(self, data_center: str, survey_id: str) -> list[QuestionDef]:
        """
        Fetch the question definitions of a survey, in the order the API returns them.

        Raises:
            RemoteError: If the request fails or a question cannot be decoded
        """
        url = questions_url(data_center, survey_id)
        payload = self.api_client.request_json("GET", url)
        elements = result_of(payload, f"questions of survey {survey_id}").get("elements") or []
        if not isinstance(elements, list):
            raise RemoteError(f"Unexpected question list for survey {survey_id}")

        try:
            questions = [QuestionDef.from_api(element) for element in elements]
        except (ValueError, TypeError) as e:
            raise RemoteError(f"Unexpected question definition for survey {survey_id}: {e}") from e

        logger.info(f"Fetched {len(questions)} question definitions for survey {survey_id}")
        return questions

    def get_column_renames(self, data_center: str, survey_id: str) -> ColumnRenameMap:
        """
        Map export field keys to question labels.

        - Text entry questions (TE): "{QID}_TEXT" -> question text
        - Matrix questions: "{QID}_{choice}" -> choice display text, per choice
        - Everything else: "{QID}" -> question text

        Returns:
            List of (field_key, label) pairs in question order
        """
        cache_key = (data_center, survey_id)
        with self._lock:
            cached = self._renames_cache.get(cache_key)
        if cached is not None:
            return list(cached)

        renames: ColumnRenameMap = []
        for question in self.get_questions(data_center, survey_id):
            renames.extend(question.column_renames())

        with self._lock:
            self._renames_cache[cache_key] = renames
        return list(renames)

    def forget_column_renames(self, data_center: str, survey_id: str) -> None:
        """Drop the cached renames of a survey so the next call refetches them."""
        with self._lock:
            self._renames_cache.pop((data_center, survey_id), None)
