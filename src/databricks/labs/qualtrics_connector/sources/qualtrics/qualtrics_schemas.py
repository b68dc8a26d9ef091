"""Schema definitions for Qualtrics connector tables.

Survey response columns depend on the survey, so the schema of the
survey_responses table is built from the materialized table. Every column is
a nullable string; nested answers are stored as JSON strings.
"""

import json
from typing import Any

from pyspark.sql.types import StringType, StructField, StructType

from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_table import (
    RESPONSE_ID_COLUMN,
    ResultTable,
)


# =============================================================================
# Table Schema Definitions
# =============================================================================

SURVEY_RESPONSES_BASE_SCHEMA = StructType([
    StructField(RESPONSE_ID_COLUMN, StringType(), True),
])
"""Schema of the survey_responses table before any response has been seen."""

TABLE_SCHEMAS: dict[str, StructType] = {
    "survey_responses": SURVEY_RESPONSES_BASE_SCHEMA,
}


# =============================================================================
# Table Metadata Definitions
# =============================================================================

TABLE_METADATA: dict[str, dict] = {
    "survey_responses": {
        "primary_keys": [RESPONSE_ID_COLUMN],
        "cursor_field": None,
        "ingestion_type": "snapshot",
    },
}
"""Metadata for each table including primary keys, cursor field, and ingestion type."""


# =============================================================================
# Supported Tables
# =============================================================================

SUPPORTED_TABLES: list[str] = list(TABLE_SCHEMAS.keys())
"""List of all table names supported by the Qualtrics connector."""


def result_table_schema(table: ResultTable) -> StructType:
    """Build a Spark schema with one nullable string field per table column."""
    return StructType([StructField(name, StringType(), True) for name in table.columns])


def to_spark_value(value: Any):
    """Store scalars as strings and nested structures as JSON strings."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
