# tests/test_normalization_agent.py
import math

import pytest

from data_insights.agents.normalization_agent import (
    ValueNormalizationAgent, normalize_row, normalize_rows, normalize_value
)
from data_insights.types import MISSING, Number, Text


class TestNormalizeValue:
    
    @pytest.mark.parametrize("token", ["", None])
    def test_empty_tokens_are_missing(self, token):
        assert normalize_value(token) is MISSING
    
    @pytest.mark.parametrize("token,expected", [
        ("42", 42.0),
        ("-3.5", -3.5),
        ("+7", 7.0),
        (".5", 0.5),
        ("5.", 5.0),
        ("1e3", 1000.0),
        ("2.5E-2", 0.025),
        (" 12 ", 12.0),
    ])
    def test_numeric_literals(self, token, expected):
        assert normalize_value(token) == Number(expected)
    
    @pytest.mark.parametrize("token", [
        "3abc", "abc", "N/A", "NaN", "nan", "Infinity", "-inf", "1e999",
        "0x10", "1_000", "1,000", "   ", "1.2.3", "e5", "--1",
    ])
    def test_non_numeric_tokens_keep_original_text(self, token):
        assert normalize_value(token) == Text(token)
    
    def test_normalized_values_pass_through(self):
        assert normalize_value(MISSING) is MISSING
        assert normalize_value(Number(1.0)) == Number(1.0)
        assert normalize_value(Text("x")) == Text("x")
    
    def test_python_numbers(self):
        assert normalize_value(3) == Number(3.0)
        assert normalize_value(float("nan")) is MISSING
        assert normalize_value(math.inf) == Text("inf")
    
    def test_number_and_text_are_distinct(self):
        assert Number(1.0) != Text("1")


class TestNormalizeRows:
    
    def test_absent_key_is_missing(self):
        row = normalize_row({"a": "1"}, columns=["a", "b"])
        assert row == {"a": Number(1.0), "b": MISSING}
    
    def test_columns_follow_first_row_order(self):
        columns, rows = normalize_rows([
            {"b": "x", "a": "1"},
            {"a": "", "b": "y"},
        ])
        
        assert columns == ["b", "a"]
        assert list(rows[1].keys()) == ["b", "a"]
        assert rows[1]["a"] is MISSING
    
    def test_empty_dataset(self):
        assert normalize_rows([]) == ([], [])


class TestValueNormalizationAgent:
    
    @pytest.mark.asyncio
    async def test_process_updates_state(self):
        agent = ValueNormalizationAgent()
        state = {
            'raw_records': [{"x": "1", "y": ""}, {"x": "two", "y": "3"}],
            'execution_log': [],
            'errors': []
        }
        
        result = await agent.process(state)
        
        assert result['columns'] == ["x", "y"]
        assert result['normalized_rows'][0] == {"x": Number(1.0), "y": MISSING}
        assert result['normalized_rows'][1]["x"] == Text("two")
        assert result['next_action'] == 'insight_generation'
        assert len(result['execution_log']) == 1
