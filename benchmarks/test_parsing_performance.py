"""
bplist decoding performance benchmarks comparing zplist against plistlib.

Compares decoding speed across different document shapes and sizes:
- Standard library plistlib
- zplist with string pooling (shared pool)
- zplist without string pooling
"""

import functools
import plistlib
from collections.abc import Callable
from typing import Any

import pytest

import zplist
from benchmarks.data_generators import DATA_TYPES
from benchmarks.data_generators import generate_test_data

PARSERS = [
    ("plistlib", plistlib.loads),
    ("zplist_pool", zplist.loads),
    ("zplist_no_pool", functools.partial(zplist.loads, intern_strings=False)),
]


class TestParsingBenchmarks:
    """Benchmarks for bplist decoding performance across implementations."""

    @pytest.mark.benchmark(group="small_objects")
    @pytest.mark.parametrize("parser,parse_func", PARSERS)
    def test_small_object_parsing(
        self, benchmark: Any, parser: str, parse_func: Callable[[bytes], Any]
    ) -> None:
        """Benchmarks decoding of small dictionaries (< 1KB)."""
        test_data = generate_test_data("small_object")
        result = benchmark(parse_func, test_data)
        assert isinstance(result, dict)

    @pytest.mark.benchmark(group="large_objects")
    @pytest.mark.parametrize("parser,parse_func", PARSERS)
    def test_large_object_parsing(
        self, benchmark: Any, parser: str, parse_func: Callable[[bytes], Any]
    ) -> None:
        """Benchmarks decoding of large dictionaries (> 10KB)."""
        test_data = generate_test_data("large_object")
        result = benchmark(parse_func, test_data)
        assert isinstance(result, dict)

    @pytest.mark.benchmark(group="arrays")
    @pytest.mark.parametrize("parser,parse_func", PARSERS)
    def test_array_parsing(
        self, benchmark: Any, parser: str, parse_func: Callable[[bytes], Any]
    ) -> None:
        """Benchmarks decoding of large arrays with mixed record kinds."""
        test_data = generate_test_data("mixed_array")
        result = benchmark(parse_func, test_data)
        assert isinstance(result, list)

    @pytest.mark.benchmark(group="nested_structures")
    @pytest.mark.parametrize("parser,parse_func", PARSERS)
    def test_nested_structure_parsing(
        self, benchmark: Any, parser: str, parse_func: Callable[[bytes], Any]
    ) -> None:
        """Benchmarks decoding of deeply nested dictionaries."""
        test_data = generate_test_data("nested_structure")
        result = benchmark(parse_func, test_data)
        assert isinstance(result, dict)

    @pytest.mark.benchmark(group="key_heavy")
    @pytest.mark.parametrize("parser,parse_func", PARSERS)
    def test_key_heavy_parsing(
        self, benchmark: Any, parser: str, parse_func: Callable[[bytes], Any]
    ) -> None:
        """Benchmarks decoding of many dictionaries with shared keys."""
        test_data = generate_test_data("key_heavy")
        result = benchmark(parse_func, test_data)
        assert isinstance(result, list)


@pytest.mark.parametrize("data_type", DATA_TYPES)
def test_results_match_plistlib(data_type: str) -> None:
    """Checks every benchmark payload decodes identically to plistlib."""
    test_data = generate_test_data(data_type)
    expected = plistlib.loads(test_data)
    assert zplist.loads(test_data, aware_datetime=False) == expected
