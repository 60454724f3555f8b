# data_insights/agents/normalization_agent.py
import logging
import math
import re
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from data_insights.types import (
    MISSING, Missing, Number, Text, NormalizedValue, NormalizedRow, RawRow
)

logger = logging.getLogger(__name__)

# Decimal literal only: no hex, no digit separators, no nan/inf spellings
NUMERIC_LITERAL = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?', re.ASCII)


def normalize_value(token: Any) -> NormalizedValue:
    """
    Coerce one raw cell token into a typed value.

    Empty tokens become MISSING, tokens that are entirely a finite numeric
    literal become Number, anything else becomes Text holding the original
    string. Never raises.
    """
    if isinstance(token, (Missing, Number, Text)):
        return token

    if token is None or token == '':
        return MISSING

    if isinstance(token, bool):
        return Text(str(token))

    if isinstance(token, (int, float)):
        try:
            value = float(token)
        except OverflowError:
            return Text(str(token))
        if math.isnan(value):
            return MISSING
        return Number(value) if math.isfinite(value) else Text(str(token))

    text = str(token)
    if NUMERIC_LITERAL.fullmatch(text.strip()):
        value = float(text)
        if math.isfinite(value):
            return Number(value)

    return Text(text)


def normalize_row(row: RawRow, columns: Optional[Sequence[str]] = None) -> NormalizedRow:
    """Normalize every cell of a row; columns absent from the row are MISSING"""
    if columns is None:
        columns = list(row.keys())
    return {column: normalize_value(row.get(column)) for column in columns}


def normalize_rows(rows: Iterable[RawRow]) -> Tuple[List[str], List[NormalizedRow]]:
    """
    Normalize a whole dataset.

    Column names come from the first row, in its key order.

    Returns:
        (columns, normalized_rows)
    """
    rows = list(rows)
    if not rows:
        return [], []

    columns = list(rows[0].keys())
    return columns, [normalize_row(row, columns) for row in rows]


class ValueNormalizationAgent:
    """Pipeline stage turning raw records into typed rows"""

    async def process(self, state: dict) -> dict:
        logger.info("Starting value normalization")

        try:
            columns, rows = normalize_rows(state.get('raw_records') or [])

            numeric_cells = sum(
                1 for row in rows for value in row.values() if isinstance(value, Number)
            )
            missing_cells = sum(
                1 for row in rows for value in row.values() if value is MISSING
            )

            state.update({
                'columns': columns,
                'normalized_rows': rows,
                'current_step': 'value_normalization',
                'next_action': 'insight_generation'
            })

            state['execution_log'].append(
                f"Values normalized: {len(rows)} rows, {numeric_cells} numeric cells, "
                f"{missing_cells} missing cells"
            )

            return state

        except Exception as e:
            logger.error(f"Value normalization failed: {str(e)}")
            state.setdefault('errors', []).append(f"Value normalization error: {str(e)}")
            state['next_action'] = 'error'
            return state
