"""Configuration constants and logging setup for the Qualtrics connector.

This module holds the tunables used across the export client, the question
metadata client and the orchestrator, plus small helpers for reading
connector options.
"""

import json
import logging
import sys


class QualtricsConfig:
    """Configuration constants for Qualtrics connector."""

    # Export polling configuration
    EXPORT_POLL_INTERVAL = 10  # seconds between status checks
    MAX_EXPORT_POLL_ATTEMPTS = 18  # 18 attempts at 10s = 3 min total

    # Export request defaults; caller-supplied keys win
    DEFAULT_EXPORT_OPTIONS = {"format": "json", "compress": False}

    # Schema inference looks at the first N responses only
    SCHEMA_SAMPLE_SIZE = 10

    # HTTP retry configuration (only for HTTP 429 rate limiting)
    MAX_HTTP_RETRIES = 3

    # Rate limiting
    RATE_LIMIT_DEFAULT_WAIT = 60  # seconds (when Retry-After header missing)

    # Request timeout
    REQUEST_TIMEOUT = 30  # seconds per HTTP request
    DOWNLOAD_TIMEOUT_MULTIPLIER = 5  # export files can be large

    API_PATH = "/API/v3"

    @staticmethod
    def base_url(data_center: str) -> str:
        """Build the API base URL for a datacenter (e.g. 'fra1', 'iad1')."""
        return f"https://{data_center}.qualtrics.com{QualtricsConfig.API_PATH}"


def get_logger() -> logging.Logger:
    """
    Return the shared connector logger.

    Logs go to stderr, which is where DLT/Lakeflow pipelines pick them up.
    """
    connector_logger = logging.getLogger("QualtricsConnector")
    if not connector_logger.handlers:
        connector_logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - QUALTRICS - %(levelname)s - %(message)s")
        )
        connector_logger.addHandler(handler)
    return connector_logger


def parse_bool_option(value, default: bool = False) -> bool:
    """Interpret a connector option ('true', 'false', '1', ...) as a boolean."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "y")


def parse_json_option(value, option_name: str) -> dict:
    """
    Interpret a connector option holding a JSON object.

    Raises:
        ValueError: If the value is not a JSON object.
    """
    if value is None or value == "":
        return {}
    if isinstance(value, dict):
        return dict(value)
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValueError(f"Option '{option_name}' is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError(f"Option '{option_name}' must be a JSON object")
    return parsed
