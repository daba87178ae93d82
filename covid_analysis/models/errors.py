#!/usr/bin/env python3
"""Errors raised by the pipeline.

Data-quality findings are reported, not raised. Only a broken input contract
(missing columns) or an unsafe join stops a run.
"""

from typing import Dict, Iterable, Tuple

DuplicateKeys = Dict[Tuple[str, str], int]


class CovidAnalysisError(ValueError):
    """Base class for pipeline errors."""


class SchemaError(CovidAnalysisError):
    """A required column is missing from an input table."""

    def __init__(self, table: str, missing_columns: Iterable[str]):
        self.table = table
        self.missing_columns = sorted(missing_columns)
        super().__init__(
            f"Table '{table}' is missing required columns: {', '.join(self.missing_columns)}"
        )


class JoinSafetyError(CovidAnalysisError):
    """Duplicate (location, date) keys make the join unsafe."""

    def __init__(self, duplicates: Dict[str, DuplicateKeys]):
        self.duplicates = {table: keys for table, keys in duplicates.items() if keys}
        summary = []
        for table, keys in self.duplicates.items():
            examples = ", ".join(f"{loc} @ {day} (x{cnt})" for (loc, day), cnt in list(keys.items())[:5])
            summary.append(f"{table}: {len(keys)} duplicate keys [{examples}]")
        super().__init__("Refusing to join on non-unique (location, date): " + "; ".join(summary))
