# data_insights/agents/insight_agent.py
import asyncio
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from data_insights.agents.normalization_agent import normalize_value
from data_insights.types import (
    MISSING, Number, ColumnStats, CorrelationMatrix, InsightResult, NormalizedValue
)
from data_insights.utils.logging_config import log_async_execution_time

logger = logging.getLogger(__name__)

DEFAULT_NUMERIC_THRESHOLD = 0.8


def infer_is_numeric(numeric_count: int, non_missing_count: int,
                     threshold: float = DEFAULT_NUMERIC_THRESHOLD) -> bool:
    """A column is numeric when strictly more than `threshold` of its non-missing cells are numbers"""
    if numeric_count == 0 or non_missing_count == 0:
        return False
    return numeric_count / non_missing_count > threshold


def _magnitude(values: np.ndarray) -> float:
    """Largest absolute value, used to rescale vectors whose sums overflow"""
    scale = float(np.max(np.abs(values)))
    return scale if scale > 0 else 1.0


def finite_mean(values: np.ndarray) -> Optional[float]:
    """Arithmetic mean, rescaled when the plain sum overflows"""
    with np.errstate(over='ignore', invalid='ignore'):
        mean = float(np.mean(values))
        if not math.isfinite(mean):
            scale = _magnitude(values)
            mean = float(np.mean(values / scale)) * scale
    return mean if math.isfinite(mean) else None


def sample_std(values: np.ndarray, mean: Optional[float] = None) -> Optional[float]:
    """Bessel-corrected standard deviation, 0 for fewer than two values or a constant vector"""
    if len(values) < 2 or np.ptp(values) == 0:
        return 0.0

    with np.errstate(over='ignore', invalid='ignore'):
        if mean is not None:
            std = math.sqrt(float(np.sum((values - mean) ** 2)) / (len(values) - 1))
        else:
            std = math.inf

        if not math.isfinite(std):
            scale = _magnitude(values)
            scaled = values / scale
            spread = scaled - float(np.mean(scaled))
            std = math.sqrt(float(np.sum(spread ** 2)) / (len(values) - 1)) * scale

    return std if math.isfinite(std) else None


def _pearson_terms(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    dx = x - float(np.mean(x))
    dy = y - float(np.mean(y))
    numerator = float(np.sum(dx * dy))
    denominator = math.sqrt(float(np.sum(dx * dx))) * math.sqrt(float(np.sum(dy * dy)))
    return numerator, denominator


def pearson_correlation(x: np.ndarray, y: np.ndarray) -> Optional[float]:
    """
    Pearson's r over two aligned vectors.

    Returns None when the coefficient is undefined: no pairs, a single
    pair, or a vector with zero variance. Zero variance is decided on the
    raw values, so rounding in the mean cannot turn a constant vector into
    a tiny nonzero coefficient.
    """
    if len(x) != len(y) or len(x) == 0:
        return None

    if np.ptp(x) == 0 or np.ptp(y) == 0:
        return None

    with np.errstate(over='ignore', invalid='ignore'):
        numerator, denominator = _pearson_terms(x, y)

        # r does not depend on scale
        if not (math.isfinite(numerator) and math.isfinite(denominator)):
            numerator, denominator = _pearson_terms(x / _magnitude(x), y / _magnitude(y))

    if denominator == 0:
        return None

    r = numerator / denominator
    if not math.isfinite(r):
        return None

    return max(-1.0, min(1.0, r))


class InsightEngine:
    """Per-column statistics and pairwise correlation for a dataset"""

    def __init__(self, numeric_threshold: float = DEFAULT_NUMERIC_THRESHOLD):
        self.numeric_threshold = numeric_threshold

    def compute_insights(self, rows: Sequence[dict]) -> InsightResult:
        """
        Compute column statistics and the correlation matrix.

        Args:
            rows: Rows mapping column name to a normalized value or a raw
                token. Column names and order come from the first row.

        Returns:
            InsightResult with one ColumnStats per column and a correlation
            matrix over the numeric-inferred columns
        """
        if not rows:
            return InsightResult(stats=[], matrix=CorrelationMatrix(columns=[], matrix=[]))

        columns = list(rows[0].keys())
        column_values = {
            column: [normalize_value(row.get(column)) for row in rows]
            for column in columns
        }

        stats = [self._column_stats(column, column_values[column]) for column in columns]

        numeric_columns = [stat.column for stat in stats if stat.is_numeric]
        matrix = self._correlation_matrix(numeric_columns, column_values)

        logger.debug(
            f"Insights computed: {len(rows)} rows, {len(columns)} columns, "
            f"{len(numeric_columns)} numeric"
        )

        return InsightResult(stats=stats, matrix=matrix)

    def _column_stats(self, column: str, values: List[NormalizedValue]) -> ColumnStats:
        missing = sum(1 for value in values if value is MISSING)
        non_missing = len(values) - missing
        numeric_values = [value.value for value in values if isinstance(value, Number)]

        is_numeric = infer_is_numeric(len(numeric_values), non_missing, self.numeric_threshold)

        column_stats = ColumnStats(
            column=column,
            count=len(values),
            missing=missing,
            is_numeric=is_numeric
        )

        if is_numeric:
            array = np.asarray(numeric_values, dtype=float)
            mean = finite_mean(array)
            column_stats.mean = mean
            column_stats.std_dev = sample_std(array, mean)
            column_stats.min = float(np.min(array))
            column_stats.max = float(np.max(array))
        else:
            column_stats.unique = len({value for value in values if value is not MISSING})

        return column_stats

    def _correlation_matrix(self, numeric_columns: List[str],
                            column_values: Dict[str, List[NormalizedValue]]) -> CorrelationMatrix:
        size = len(numeric_columns)
        matrix: List[List[Optional[float]]] = [[None] * size for _ in range(size)]

        # NaN marks rows without a Number in that column
        vectors = {
            column: np.array(
                [value.value if isinstance(value, Number) else np.nan
                 for value in column_values[column]],
                dtype=float
            )
            for column in numeric_columns
        }

        for i in range(size):
            for j in range(i, size):
                if i == j:
                    matrix[i][j] = 1.0
                    continue

                first = vectors[numeric_columns[i]]
                second = vectors[numeric_columns[j]]

                # Pairwise complete cases only
                mask = ~np.isnan(first) & ~np.isnan(second)
                correlation = pearson_correlation(first[mask], second[mask])

                matrix[i][j] = correlation
                matrix[j][i] = correlation

        return CorrelationMatrix(columns=list(numeric_columns), matrix=matrix)


def compute_insights(rows: Sequence[dict],
                     numeric_threshold: float = DEFAULT_NUMERIC_THRESHOLD) -> InsightResult:
    """Compute insights for a dataset with a fresh engine"""
    return InsightEngine(numeric_threshold).compute_insights(rows)


class InsightGenerationAgent:
    """Pipeline stage running the insight engine over normalized rows"""

    def __init__(self, numeric_threshold: float = DEFAULT_NUMERIC_THRESHOLD):
        self.engine = InsightEngine(numeric_threshold)

    @log_async_execution_time
    async def process(self, state: dict) -> dict:
        logger.info("Starting insight generation")

        try:
            rows = state.get('normalized_rows') or []

            # CPU-bound, keep it off the event loop
            insights = await asyncio.to_thread(self.engine.compute_insights, rows)

            state.update({
                'insights': insights,
                'current_step': 'insight_generation',
                'next_action': 'completed'
            })

            state['execution_log'].append(
                f"Insights generated: {len(insights.stats)} columns profiled, "
                f"{len(insights.numeric_columns)} numeric columns correlated"
            )

            return state

        except Exception as e:
            logger.error(f"Insight generation failed: {str(e)}")
            state.setdefault('errors', []).append(f"Insight generation error: {str(e)}")
            state['next_action'] = 'error'
            return state
