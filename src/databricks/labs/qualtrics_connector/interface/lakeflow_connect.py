"""Interface every Lakeflow source connector implements."""

from abc import ABC, abstractmethod
from typing import Iterator

from pyspark.sql.types import StructType


class LakeflowConnect(ABC):
    """
    A source connector exposes a set of tables to the ingestion pipeline.

    Implementations are constructed with the connection options (credentials
    and connection-level settings) and receive per-table options on each call.
    """

    @abstractmethod
    def __init__(self, options: dict[str, str]) -> None:
        pass

    @abstractmethod
    def list_tables(self) -> list[str]:
        """Return the names of the tables this connector can read."""

    @abstractmethod
    def get_table_schema(
        self, table_name: str, table_options: dict[str, str]
    ) -> StructType:
        """Return the Spark schema of a table."""

    @abstractmethod
    def read_table_metadata(
        self, table_name: str, table_options: dict[str, str]
    ) -> dict:
        """Return primary_keys, cursor_field and ingestion_type for a table."""

    @abstractmethod
    def read_table(
        self, table_name: str, start_offset: dict, table_options: dict[str, str]
    ) -> (Iterator[dict], dict):
        """Return an iterator of records and the offset to resume from."""
