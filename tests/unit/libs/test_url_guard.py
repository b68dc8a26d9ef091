import pytest

from databricks.labs.qualtrics_connector.libs.url_guard import InvalidSchemeError, validate_https_url


def test_https_url_is_returned_unchanged():
    url = "https://x.qualtrics.com"
    assert validate_https_url(url) is url


def test_https_scheme_is_case_insensitive():
    url = "HTTPS://fra1.qualtrics.com/API/v3/surveys/SV_1/export-responses"
    assert validate_https_url(url) == url


@pytest.mark.parametrize(
    "url",
    [
        "http://x.qualtrics.com",
        "ftp://x.qualtrics.com/file",
        "x.qualtrics.com/API/v3",
    ],
)
def test_non_https_url_is_rejected(url):
    with pytest.raises(InvalidSchemeError) as exc_info:
        validate_https_url(url)
    assert exc_info.value.url == url


def test_invalid_scheme_is_a_value_error():
    with pytest.raises(ValueError):
        validate_https_url("http://x.qualtrics.com")
