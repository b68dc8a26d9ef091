"""Flatten exported survey responses into a rectangular table."""

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Sequence

from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_errors import SchemaMismatch
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_export import ResponseRecord
from databricks.labs.qualtrics_connector.sources.qualtrics.qualtrics_utils import (
    QualtricsConfig,
    get_logger,
)

logger = get_logger()

RESPONSE_ID_COLUMN = "responseId"


@dataclass(frozen=True)
class ResultTable:
    """
    Rows of survey responses over a fixed, ordered set of columns.

    Every row holds a key for every column; fields a respondent did not
    answer are None.
    """

    columns: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def column(self, name: str) -> list[Any]:
        if name not in self.columns:
            raise KeyError(name)
        return [row[name] for row in self.rows]

    def to_records(self) -> Iterator[dict[str, Any]]:
        for row in self.rows:
            yield {name: row[name] for name in self.columns}

    def rename(self, renames: Iterable[tuple[str, str]]) -> "ResultTable":
        """
        Relabel columns, keeping column order and values.

        Pairs whose source key is not a column are ignored. When a key appears
        more than once the first pair wins. Collisions are judged on the final
        column names, so a column may take a label that another column is
        renamed away from. When several columns would end up with the same
        name, a column that is not renamed keeps it, otherwise the earliest
        pair does; the others stay under their original key.
        """
        mapping: dict[str, str] = {}
        seen: set[str] = set()
        for old, new in renames:
            if old not in self.columns or old in seen:
                continue
            seen.add(old)
            if new != old:
                mapping[old] = new

        while True:
            claims: dict[str, list[str]] = {}
            for name in self.columns:
                if name not in mapping:
                    claims.setdefault(name, []).append(name)
            for old, new in mapping.items():
                claims.setdefault(new, []).append(old)

            losers = [(old, label) for label, owners in claims.items() for old in owners[1:]]
            if not losers:
                break
            # Reverting a column can free or block other labels, so check again.
            for old, label in losers:
                logger.warning(f"Not renaming column {old!r}: label {label!r} is already in use")
                del mapping[old]

        if not mapping:
            return self

        new_columns = [mapping.get(name, name) for name in self.columns]
        new_rows = [
            {mapping.get(name, name): row[name] for name in self.columns}
            for row in self.rows
        ]
        return ResultTable(columns=new_columns, rows=new_rows)


def infer_columns(
    responses: Sequence[ResponseRecord], sample_size: int = QualtricsConfig.SCHEMA_SAMPLE_SIZE
) -> list[str]:
    """
    Build the column list from the first ``sample_size`` responses.

    ``responseId`` comes first, followed by value keys in the order they are
    first seen across the sample.
    """
    columns = [RESPONSE_ID_COLUMN]
    seen = {RESPONSE_ID_COLUMN}
    for record in responses[:sample_size]:
        for key in record.values:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def normalize_responses(
    responses: Sequence[ResponseRecord],
    sample_size: int = QualtricsConfig.SCHEMA_SAMPLE_SIZE,
    strict_schema: bool = False,
) -> ResultTable:
    """
    Turn export responses into one row per response.

    Columns are inferred from the first ``sample_size`` responses only. A
    later response carrying keys outside the sample loses those values, or
    raises SchemaMismatch when ``strict_schema`` is set.

    Args:
        responses: Responses in export order
        sample_size: Number of leading responses used to infer columns
        strict_schema: Fail instead of dropping keys missing from the sample

    Returns:
        ResultTable with one row per response
    """
    columns = infer_columns(responses, sample_size)
    known = set(columns)
    dropped: dict[str, int] = {}

    rows = []
    for index, record in enumerate(responses):
        unseen = [key for key in record.values if key not in known]
        if unseen:
            if strict_schema:
                raise SchemaMismatch(index, unseen)
            for key in unseen:
                dropped[key] = dropped.get(key, 0) + 1

        row = {name: record.values.get(name) for name in columns}
        row[RESPONSE_ID_COLUMN] = record.response_id
        rows.append(row)

    if dropped:
        logger.warning(
            f"Dropped fields not present in the first {sample_size} responses: "
            + ", ".join(f"{key} ({count} responses)" for key, count in dropped.items())
        )
    return ResultTable(columns=columns, rows=rows)
