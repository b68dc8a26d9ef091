# Fixtures (mock_sleep) are defined in conftest.py, the mock session in qualtrics_mocks.py.

import pytest
import requests

from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_client import QualtricsAPIClient
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_errors import RemoteError
from tests.unit.sources.qualtrics.qualtrics_mocks import (
    API_TOKEN,
    MockQualtricsRequestsSession,
)

QUESTIONS_URL = "https://fra1.qualtrics.com/API/v3/survey-definitions/SV_1/questions"


def test_client_requires_api_token():
    with pytest.raises(ValueError, match="api_token is required"):
        QualtricsAPIClient("")


def test_client_sends_api_token_header():
    mock_session = MockQualtricsRequestsSession(questions=[{"QuestionID": "QID1"}])
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)

    payload = client.request_json("GET", QUESTIONS_URL)

    assert payload == {"result": {"elements": [{"QuestionID": "QID1"}]}}
    _, kwargs = mock_session._get_calls[0]
    assert kwargs["headers"]["X-API-TOKEN"] == API_TOKEN
    assert "Cache-Control" not in kwargs["headers"]
    assert kwargs["timeout"] == 30


def test_client_marks_retries_as_uncached():
    mock_session = MockQualtricsRequestsSession()
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)

    client.request_json("GET", QUESTIONS_URL, is_retry=True)

    _, kwargs = mock_session._get_calls[0]
    assert kwargs["headers"]["Cache-Control"] == "no-cache"


def test_client_surfaces_qualtrics_error_message():
    mock_session = MockQualtricsRequestsSession(fail_with={"questions": 403})
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)

    with pytest.raises(RemoteError) as exc_info:
        client.request_json("GET", QUESTIONS_URL)

    assert exc_info.value.status_code == 403
    assert "questions failed" in exc_info.value.error_message
    assert len(mock_session._get_calls) == 1, "Non-429 errors must not be retried"


def test_client_rejects_wrong_token():
    mock_session = MockQualtricsRequestsSession()
    client = QualtricsAPIClient("wrong_token", session=mock_session)

    with pytest.raises(RemoteError) as exc_info:
        client.request("GET", QUESTIONS_URL)
    assert exc_info.value.status_code == 401


def test_client_waits_out_rate_limiting(mock_sleep):
    mock_session = MockQualtricsRequestsSession(rate_limit_retries=2)
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)

    client.request_json("GET", QUESTIONS_URL)

    assert len(mock_session._get_calls) == 3
    assert [call.args[0] for call in mock_sleep.call_args_list] == [1.0, 1.0]


def test_client_fails_after_exceeding_max_retries():
    mock_session = MockQualtricsRequestsSession(rate_limit_retries=4)
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)

    with pytest.raises(RemoteError) as exc_info:
        client.request("GET", QUESTIONS_URL, max_retries=3)

    assert exc_info.value.status_code == 429
    assert len(mock_session._get_calls) == 4


def test_client_wraps_connection_errors():
    mock_session = MockQualtricsRequestsSession()

    def unreachable(url, **kwargs):
        raise requests.exceptions.ConnectionError("unreachable")

    mock_session.get = unreachable
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)

    with pytest.raises(RemoteError, match="unreachable"):
        client.request("GET", QUESTIONS_URL)


def test_client_rejects_non_json_body():
    mock_session = MockQualtricsRequestsSession(file_content=b"not json at all")
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)
    url = "https://fra1.qualtrics.com/API/v3/surveys/SV_1/export-responses/F1/file"

    with pytest.raises(RemoteError, match="not JSON"):
        client.request_json("GET", url)


def test_client_rejects_unsupported_method():
    client = QualtricsAPIClient(API_TOKEN, session=MockQualtricsRequestsSession())
    with pytest.raises(ValueError, match="Unsupported HTTP method"):
        client.request("DELETE", QUESTIONS_URL)


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"meta": {"httpStatus": "500 - Internal Error", "error": "boom"}}, "500 - Internal Error: boom"),
        ({"meta": {"error": "boom"}}, "boom"),
        ({"meta": "broken"}, '{"meta": "broken"}'),
        (["not", "an", "object"], '["not", "an", "object"]'),
    ],
)
def test_client_decodes_error_from_malformed_body(body, expected):
    mock_session = MockQualtricsRequestsSession()
    mock_session.get = lambda url, **kwargs: mock_session._make_json_response(500, body)
    client = QualtricsAPIClient(API_TOKEN, session=mock_session)

    with pytest.raises(RemoteError) as exc_info:
        client.request("GET", QUESTIONS_URL)

    assert exc_info.value.status_code == 500
    assert exc_info.value.error_message == expected
