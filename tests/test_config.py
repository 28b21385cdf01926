"""
Tests for workload parsing, object specs and bin generation in rwbench.config.
"""

import random

import pytest

from rwbench.config import (
    BenchmarkConfig,
    BinGenerator,
    ObjectSpec,
    Workload,
    WorkloadSpec,
    parse_object_spec,
    parse_workload,
)


class TestParseWorkload:
    """Tests for the -w option syntax."""

    def test_read_update_with_read_pct(self):
        spec = parse_workload("RU,80")
        assert spec.kind is Workload.READ_UPDATE
        assert spec.read_pct == pytest.approx(0.8)
        assert spec.read_multi_bin_pct == pytest.approx(1.0)
        assert spec.write_multi_bin_pct == pytest.approx(1.0)

    def test_read_update_with_multi_bin_pcts(self):
        spec = parse_workload("ru, 70, 25, 10")
        assert spec == WorkloadSpec(Workload.READ_UPDATE, 0.7, 0.25, 0.1)

    @pytest.mark.parametrize("code,kind", [
        ("RMU", Workload.READ_MODIFY_UPDATE),
        ("RMI", Workload.READ_MODIFY_INCREMENT),
        ("RMD", Workload.READ_MODIFY_DECREMENT),
        ("RR", Workload.READ_FROM_FILE),
    ])
    def test_other_kinds(self, code, kind):
        assert parse_workload(code).kind is kind

    @pytest.mark.parametrize("text", [
        "XX",
        "RU",
        "RU,abc",
        "RU,101",
        "RU,-1",
        "RU,50,50,50,50",
        "RMU,10",
    ])
    def test_rejects_malformed(self, text):
        with pytest.raises(ValueError):
            parse_workload(text)


class TestObjectSpec:
    """Tests for value types."""

    def test_integer(self):
        assert parse_object_spec("I") == ObjectSpec("I")

    def test_string_with_size(self):
        spec = parse_object_spec("s:20")
        assert spec == ObjectSpec("S", 20)
        value = spec.generate(random.Random(1))
        assert isinstance(value, str) and len(value) == 20
        assert value.isalnum()

    def test_bytes_with_size(self):
        value = parse_object_spec("B:16").generate(random.Random(1))
        assert isinstance(value, bytes) and len(value) == 16

    @pytest.mark.parametrize("text", ["Q", "S", "B:", "S:x", "B:0", "I:4"])
    def test_rejects_malformed(self, text):
        with pytest.raises(ValueError):
            parse_object_spec(text)


class TestBinGenerator:
    """Tests for record generation."""

    def test_single_bin_when_not_multi(self):
        bins = BinGenerator(n_bins=4).generate(random.Random(1), False)
        assert [name for name, _ in bins] == ["testbin"]

    def test_all_bins_when_multi(self):
        bins = BinGenerator(n_bins=3).generate(random.Random(1), True)
        assert [name for name, _ in bins] == ["testbin", "testbin_1", "testbin_2"]

    def test_same_seed_same_values(self):
        gen = BinGenerator(ObjectSpec("S", 8), 2)
        assert gen.generate(random.Random(7), True) == gen.generate(random.Random(7), True)


class TestBenchmarkConfig:
    """Tests for config construction and range checks."""

    def test_from_workload(self):
        config = BenchmarkConfig.from_workload(parse_workload("RU,30,20,10"), batch_size=3)
        assert config.read_pct == pytest.approx(0.3)
        assert config.read_multi_bin_pct == pytest.approx(0.2)
        assert config.write_multi_bin_pct == pytest.approx(0.1)
        assert config.batch_size == 3

    def test_defaults_are_valid(self):
        BenchmarkConfig().validate_values()

    @pytest.mark.parametrize("kwargs", [
        {"read_pct": 1.5},
        {"write_multi_bin_pct": -0.1},
        {"batch_size": 0},
        {"throughput": -1},
        {"key_count": 0},
        {"threads": 0},
        {"bin_generator": BinGenerator(n_bins=0)},
    ])
    def test_rejects_out_of_range(self, kwargs):
        with pytest.raises(ValueError):
            BenchmarkConfig(**kwargs).validate_values()

    def test_is_immutable(self):
        config = BenchmarkConfig()
        with pytest.raises(AttributeError):
            config.read_pct = 0.1
