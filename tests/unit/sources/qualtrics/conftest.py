# Shared fixtures for the Qualtrics unit tests.
# Pytest auto-discovers fixtures here for tests in this directory and subdirectories.
# The mock session and constants live in qualtrics_mocks.py.

from unittest.mock import patch

import pytest

from tests.unit.sources.qualtrics.qualtrics_mocks import FILE_ID


@pytest.fixture(autouse=True)
def mock_sleep():
    """Patch time.sleep so polling and rate limit waits run instantly."""
    with patch("databricks.labs.qualtrics_connector.libs.polling.time.sleep") as sleep:
        yield sleep


@pytest.fixture
def survey_responses() -> list[dict]:
    """Two responses with different field sets, as in a real sparse export."""
    return [
        {"responseId": "R1", "values": {"QID1_TEXT": "hello"}},
        {"responseId": "R2", "values": {"QID1_TEXT": "world", "QID3": "5"}},
    ]


@pytest.fixture
def survey_questions() -> list[dict]:
    """Question definitions covering text entry, matrix and multiple choice."""
    return [
        {
            "QuestionID": "QID1",
            "QuestionText": "Your answer",
            "QuestionType": "TE",
            "Choices": [],
        },
        {
            "QuestionID": "QID2",
            "QuestionText": "Do you agree?",
            "QuestionType": "Matrix",
            "Choices": {"1": {"Display": "Yes"}, "2": {"Display": "No"}},
        },
        {
            "QuestionID": "QID3",
            "QuestionText": "How satisfied are you?",
            "QuestionType": "MC",
            "Choices": {"1": {"Display": "1"}, "5": {"Display": "5"}},
        },
    ]


@pytest.fixture
def pending_then_complete() -> list[dict]:
    """Export progress: in progress for three checks, complete on the fourth."""
    return [
        {"status": "inProgress", "percentComplete": 0.0},
        {"status": "inProgress", "percentComplete": 30.0},
        {"status": "inProgress", "percentComplete": 70.0},
        {"status": "complete", "percentComplete": 100.0, "fileId": FILE_ID},
    ]
