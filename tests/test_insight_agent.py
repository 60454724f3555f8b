# tests/test_insight_agent.py
import numpy as np
import pytest

from data_insights.agents.insight_agent import (
    InsightEngine, InsightGenerationAgent, compute_insights, infer_is_numeric, pearson_correlation
)
from data_insights.agents.normalization_agent import normalize_rows
from data_insights.types import MISSING, Number, Text


def column_rows(**columns):
    """Build rows from equal-length column lists"""
    names = list(columns)
    length = len(columns[names[0]])
    return [{name: columns[name][k] for name in names} for k in range(length)]


class TestColumnStats:
    
    @pytest.fixture
    def linear_rows(self):
        return [
            {"x": "1", "y": "2"},
            {"x": "2", "y": "4"},
            {"x": "3", "y": "6"},
        ]
    
    def test_end_to_end_linear(self, linear_rows):
        result = compute_insights(linear_rows)
        x, y = result.stats
        
        assert x.column == "x" and y.column == "y"
        assert x.mean == pytest.approx(2) and x.min == 1 and x.max == 3
        assert y.mean == pytest.approx(4) and y.min == 2 and y.max == 6
        assert x.std_dev == pytest.approx(1.0)
        assert y.std_dev == pytest.approx(2.0)
        assert result.matrix.columns == ["x", "y"]
        assert result.matrix.matrix == [[1, pytest.approx(1)], [pytest.approx(1), 1]]
    
    def test_stats_preserve_column_order(self):
        rows = [{"c": "a", "a": "1", "b": "z"}, {"c": "b", "a": "2", "b": ""}]
        result = compute_insights(rows)
        
        assert [stat.column for stat in result.stats] == ["c", "a", "b"]
    
    def test_count_is_row_count_and_missing_counts_empty(self):
        rows = column_rows(a=["1", "", "3", ""], b=["x", "y", "", "x"])
        result = compute_insights(rows)
        a, b = result.stats
        
        assert a.count == 4 and a.missing == 2
        assert b.count == 4 and b.missing == 1
    
    def test_nine_of_ten_numeric_is_numeric(self):
        values = [str(v) for v in range(9)] + ["N/A"]
        stat = compute_insights(column_rows(v=values)).stats[0]
        
        assert stat.is_numeric
        assert stat.mean == pytest.approx(4.0)
        assert stat.min == 0 and stat.max == 8
        assert stat.missing == 0
        assert stat.unique is None
    
    def test_eight_of_ten_numeric_is_not_numeric(self):
        values = [str(v) for v in range(8)] + ["N/A", "N/A"]
        stat = compute_insights(column_rows(v=values)).stats[0]
        
        assert not stat.is_numeric
        assert stat.unique == 9
        assert stat.mean is None
    
    def test_all_missing_column_is_not_numeric(self):
        result = compute_insights(column_rows(empty=["", "", ""], n=["1", "2", "3"]))
        empty = result.stats[0]
        
        assert not empty.is_numeric
        assert empty.missing == 3
        assert empty.unique == 0
        assert result.matrix.columns == ["n"]
    
    def test_single_value_has_zero_std(self):
        stat = compute_insights(column_rows(v=["5", ""])).stats[0]
        
        assert stat.is_numeric
        assert stat.std_dev == 0
        assert stat.mean == 5
    
    def test_unique_uses_exact_values(self):
        stat = compute_insights(column_rows(v=["a", "A", "a", "b", ""])).stats[0]
        assert stat.unique == 3
    
    def test_sample_standard_deviation(self):
        values = ["2", "4", "4", "4", "5", "5", "7", "9"]
        stat = compute_insights(column_rows(v=values)).stats[0]
        
        expected = np.std([2, 4, 4, 4, 5, 5, 7, 9], ddof=1)
        assert stat.std_dev == pytest.approx(expected)
    
    def test_huge_values_stay_finite(self):
        stat = compute_insights(column_rows(v=["1e308", "1e308"])).stats[0]
        
        assert stat.mean == pytest.approx(1e308)
        assert stat.std_dev == 0
    
    def test_huge_spread_stays_finite(self):
        stat = compute_insights(column_rows(v=["1e308", "1.7e308", "-1e308"])).stats[0]
        
        assert np.isfinite(stat.mean)
        assert np.isfinite(stat.std_dev)
        assert stat.std_dev > 0
    
    def test_to_dict_shapes(self):
        result = compute_insights(column_rows(n=["1", "2"], t=["a", "b"]))
        numeric, text = [stat.to_dict() for stat in result.stats]
        
        assert set(numeric) == {"column", "count", "missing", "isNumeric", "mean", "stdDev", "min", "max"}
        assert set(text) == {"column", "count", "missing", "isNumeric", "unique"}


class TestCorrelationMatrix:
    
    def test_pairwise_alignment(self):
        rows = column_rows(
            A=["1", "", "3"],
            B=["", "2", "4"],
            C=["10", "20", "30"],
        )
        matrix = compute_insights(rows).matrix
        
        assert matrix.columns == ["A", "B", "C"]
        assert matrix.get("A", "C") == pytest.approx(1.0)
        assert matrix.get("A", "B") is None
        assert matrix.get("B", "C") == pytest.approx(1.0)
    
    def test_diagonal_and_symmetry(self):
        rows = column_rows(
            a=["1", "2", "3", "4", "5"],
            b=["2", "1", "4", "3", "6"],
            c=["9", "", "7", "1", "0"],
        )
        matrix = compute_insights(rows).matrix.matrix
        
        for i in range(3):
            assert matrix[i][i] == 1
            for j in range(3):
                assert matrix[i][j] == matrix[j][i]
                if matrix[i][j] is not None:
                    assert -1 <= matrix[i][j] <= 1
    
    def test_constant_column_yields_null(self):
        rows = column_rows(k=["5", "5", "5"], x=["1", "2", "3"], y=["3", "1", "2"])
        matrix = compute_insights(rows).matrix
        
        assert matrix.get("k", "k") == 1
        assert matrix.get("k", "x") is None
        assert matrix.get("k", "y") is None
        assert matrix.get("x", "y") is not None
    
    @pytest.mark.parametrize("constant", ["0.1", "0.3", "2.675"])
    def test_decimal_constant_column_yields_null(self, constant):
        rows = column_rows(k=[constant] * 3, x=["1", "2", "4"])
        result = compute_insights(rows)
        
        assert result.matrix.get("k", "x") is None
        assert result.matrix.get("x", "k") is None
        assert result.matrix.get("k", "k") == 1
        assert result.stats[0].std_dev == 0
    
    def test_pearson_correlation_decimal_constant(self):
        constant = np.array([0.1, 0.1, 0.1])
        assert pearson_correlation(constant, np.array([1.0, 2.0, 4.0])) is None
    
    def test_huge_values_correlate(self):
        rows = column_rows(x=["1e308", "-1e308", "1.5e308"], y=["1", "-1", "1.5"])
        assert compute_insights(rows).matrix.get("x", "y") == pytest.approx(1.0)
    
    def test_negative_correlation(self):
        rows = column_rows(x=["1", "2", "3"], y=["6", "4", "2"])
        assert compute_insights(rows).matrix.get("x", "y") == pytest.approx(-1.0)
    
    def test_text_cells_excluded_from_pairs(self):
        x = ["1", "2", "3", "4", "5", "6", "7", "8", "9", "10"]
        y = ["2", "4", "6", "8", "10", "12", "14", "16", "18", "oops"]
        matrix = compute_insights(column_rows(x=x, y=y)).matrix
        
        assert matrix.columns == ["x", "y"]
        assert matrix.get("x", "y") == pytest.approx(1.0)
    
    def test_non_numeric_columns_excluded(self):
        rows = column_rows(name=["a", "b"], x=["1", "2"], y=["3", "5"])
        assert compute_insights(rows).matrix.columns == ["x", "y"]
    
    def test_pearson_correlation_undefined_cases(self):
        assert pearson_correlation(np.array([]), np.array([])) is None
        assert pearson_correlation(np.array([1.0]), np.array([2.0])) is None
        assert pearson_correlation(np.array([1.0, 1.0]), np.array([2.0, 3.0])) is None
    
    def test_pearson_correlation_matches_numpy(self):
        rng = np.random.default_rng(7)
        x = rng.normal(size=50)
        y = 0.5 * x + rng.normal(size=50)
        
        assert pearson_correlation(x, y) == pytest.approx(np.corrcoef(x, y)[0, 1])


class TestInsightEngine:
    
    def test_empty_dataset(self):
        result = compute_insights([])
        
        assert result.to_dict() == {"stats": [], "matrix": {"columns": [], "matrix": []}}
    
    def test_accepts_normalized_rows(self):
        _, rows = normalize_rows([{"x": "1", "y": "a"}, {"x": "3", "y": ""}])
        result = InsightEngine().compute_insights(rows)
        
        assert result.stats[0].mean == 2
        assert result.stats[1].unique == 1
    
    def test_mixed_raw_and_normalized_cells(self):
        rows = [{"x": Number(1.0)}, {"x": "3"}, {"x": MISSING}, {"x": Text("n/a")}]
        stat = compute_insights(rows).stats[0]
        
        # 2 numbers of 3 non-missing is below the threshold
        assert not stat.is_numeric
        assert stat.missing == 1
        assert stat.unique == 3
    
    def test_missing_key_treated_as_missing(self):
        rows = [{"x": "1", "y": "2"}, {"x": "2"}]
        stat = compute_insights(rows).stats[1]
        
        assert stat.missing == 1
        assert stat.is_numeric
    
    def test_idempotent(self):
        rows = column_rows(a=["1", "2", "", "7"], b=["3", "x", "4", "1"], c=["0.5", "1.5", "2", "9"])
        engine = InsightEngine()
        
        assert engine.compute_insights(rows).to_dict() == engine.compute_insights(rows).to_dict()
    
    def test_custom_threshold(self):
        values = [str(v) for v in range(8)] + ["N/A", "N/A"]
        stat = InsightEngine(numeric_threshold=0.75).compute_insights(column_rows(v=values)).stats[0]
        assert stat.is_numeric
    
    @pytest.mark.parametrize("numeric,non_missing,expected", [
        (9, 10, True),
        (8, 10, False),
        (0, 0, False),
        (0, 5, False),
        (1, 1, True),
    ])
    def test_infer_is_numeric(self, numeric, non_missing, expected):
        assert infer_is_numeric(numeric, non_missing) is expected


class TestInsightGenerationAgent:
    
    @pytest.mark.asyncio
    async def test_process_updates_state(self):
        _, rows = normalize_rows([{"x": "1", "y": "2"}, {"x": "2", "y": "5"}])
        agent = InsightGenerationAgent()
        state = {'normalized_rows': rows, 'execution_log': [], 'errors': []}
        
        result = await agent.process(state)
        
        assert result['next_action'] == 'completed'
        assert result['insights'].matrix.columns == ["x", "y"]
        assert result['errors'] == []
