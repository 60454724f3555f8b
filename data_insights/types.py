# data_insights/types.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


class Missing:
    """Marker for an empty cell"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __reduce__(self):
        return (Missing, ())


MISSING = Missing()


@dataclass(frozen=True)
class Number:
    """A cell whose whole token is a finite numeric literal"""
    value: float


@dataclass(frozen=True)
class Text:
    """A non-empty cell that is not numeric, kept verbatim"""
    value: str


NormalizedValue = Union[Missing, Number, Text]
RawRow = Dict[str, Optional[str]]
NormalizedRow = Dict[str, NormalizedValue]


@dataclass
class ColumnStats:
    """Descriptive statistics for one column"""
    column: str
    count: int
    missing: int
    is_numeric: bool
    mean: Optional[float] = None
    std_dev: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    unique: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'column': self.column,
            'count': self.count,
            'missing': self.missing,
            'isNumeric': self.is_numeric,
        }
        if self.is_numeric:
            result.update({
                'mean': self.mean,
                'stdDev': self.std_dev,
                'min': self.min,
                'max': self.max,
            })
        else:
            result['unique'] = self.unique
        return result


@dataclass
class CorrelationMatrix:
    """Pearson coefficients over the numeric columns; None marks an undefined pair"""
    columns: List[str] = field(default_factory=list)
    matrix: List[List[Optional[float]]] = field(default_factory=list)

    def get(self, first: str, second: str) -> Optional[float]:
        i = self.columns.index(first)
        j = self.columns.index(second)
        return self.matrix[i][j]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'columns': list(self.columns),
            'matrix': [list(row) for row in self.matrix],
        }


@dataclass
class InsightResult:
    """Column statistics plus the correlation matrix for one dataset"""
    stats: List[ColumnStats] = field(default_factory=list)
    matrix: CorrelationMatrix = field(default_factory=CorrelationMatrix)

    @property
    def numeric_columns(self) -> List[str]:
        return list(self.matrix.columns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stats': [stat.to_dict() for stat in self.stats],
            'matrix': self.matrix.to_dict(),
        }
