"""
Error types raised by the consolidation pipeline.
"""

from typing import Iterable, List


class ConsolidationError(ValueError):
    """Base class for invalid consolidation input"""


class FeatureUniverseMismatchError(ConsolidationError):
    """Raised when consolidated tables do not share identical feature IDs"""

    def __init__(
        self,
        table_name: str,
        missing: Iterable = (),
        extra: Iterable = (),
        duplicated: Iterable = (),
    ):
        self.table_name = table_name
        self.missing: List[str] = sorted(str(f) for f in missing)
        self.extra: List[str] = sorted(str(f) for f in extra)
        self.duplicated: List[str] = sorted(str(f) for f in duplicated)

        problems = []
        if self.missing:
            problems.append(f"{len(self.missing)} missing ({_preview(self.missing)})")
        if self.extra:
            problems.append(f"{len(self.extra)} extra ({_preview(self.extra)})")
        if self.duplicated:
            problems.append(
                f"{len(self.duplicated)} duplicated ({_preview(self.duplicated)})"
            )
        super().__init__(
            f"Feature universe of '{table_name}' is not usable: " + "; ".join(problems)
        )


class MissingColumnError(ConsolidationError):
    """Raised when a table lacks a column required by an analysis"""

    def __init__(self, table_name: str, columns: Iterable[str]):
        self.table_name = table_name
        self.columns = sorted(columns)
        super().__init__(
            f"Table '{table_name}' is missing required columns: {self.columns}"
        )


def _preview(items: List[str], limit: int = 5) -> str:
    if len(items) <= limit:
        return ", ".join(items)
    return ", ".join(items[:limit]) + ", ..."
