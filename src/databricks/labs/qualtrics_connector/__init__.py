"""Qualtrics survey response connector - Built on the Lakeflow connector interface."""

_LAZY_ATTRIBUTES = {
    "QualtricsLakeflowConnect": "databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics",
    "get_survey_responses": "databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics",
}


def __getattr__(name):
    """Lazy import to avoid importing pyspark-dependent modules at package init time."""
    if name in _LAZY_ATTRIBUTES:
        import importlib

        return getattr(importlib.import_module(_LAZY_ATTRIBUTES[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["QualtricsLakeflowConnect", "get_survey_responses"]
