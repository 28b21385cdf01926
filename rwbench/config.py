"""Benchmark configuration: workload kinds, object specs and bin generation."""
from __future__ import annotations

import enum
import random
import string
from dataclasses import dataclass, field
from typing import Any

# --- Constants ---

DEFAULT_READ_PCT = 50
DEFAULT_MULTI_BIN_PCT = 100
DEFAULT_BIN_NAME = "testbin"

_ALPHANUMERIC = string.ascii_letters + string.digits


class Workload(enum.Enum):
    READ_UPDATE = "RU"
    READ_MODIFY_UPDATE = "RMU"
    READ_MODIFY_INCREMENT = "RMI"
    READ_MODIFY_DECREMENT = "RMD"
    READ_FROM_FILE = "RR"


@dataclass(frozen=True)
class WorkloadSpec:
    """Parsed form of the -w option. Percentages are stored as fractions."""
    kind: Workload = Workload.READ_UPDATE
    read_pct: float = DEFAULT_READ_PCT / 100.0
    read_multi_bin_pct: float = DEFAULT_MULTI_BIN_PCT / 100.0
    write_multi_bin_pct: float = DEFAULT_MULTI_BIN_PCT / 100.0


def _parse_pct(text: str, what: str) -> float:
    try:
        pct = int(text)
    except ValueError:
        raise ValueError(f"Invalid {what} percentage '{text}'") from None
    if not 0 <= pct <= 100:
        raise ValueError(f"{what} percentage must be between 0 and 100, got {pct}")
    return pct / 100.0


def parse_workload(text: str) -> WorkloadSpec:
    """Parse a workload string.

    Accepted forms:
        RU,<read pct>[,<read multi-bin pct>[,<write multi-bin pct>]]
        RMU | RMI | RMD | RR
    """
    parts = [p.strip() for p in text.split(",")]
    code = parts[0].upper()
    try:
        kind = Workload(code)
    except ValueError:
        raise ValueError(f"Unknown workload type '{parts[0]}'") from None

    if kind is not Workload.READ_UPDATE:
        if len(parts) > 1:
            raise ValueError(f"Workload {code} takes no arguments")
        return WorkloadSpec(kind=kind)

    if len(parts) < 2 or len(parts) > 4:
        raise ValueError("Read-update workload must be RU,<read pct>[,<read multi-bin pct>[,<write multi-bin pct>]]")

    read_pct = _parse_pct(parts[1], "read")
    read_multi = _parse_pct(parts[2], "read multi-bin") if len(parts) > 2 else DEFAULT_MULTI_BIN_PCT / 100.0
    write_multi = _parse_pct(parts[3], "write multi-bin") if len(parts) > 3 else DEFAULT_MULTI_BIN_PCT / 100.0
    return WorkloadSpec(kind, read_pct, read_multi, write_multi)


# --- Object specs ---


@dataclass(frozen=True)
class ObjectSpec:
    """Value type for generated bins: I (integer), S (string) or B (bytes)."""
    type: str = "I"
    size: int = 8

    def generate(self, rng: random.Random) -> Any:
        if self.type == "I":
            return rng.getrandbits(63)
        if self.type == "S":
            return "".join(rng.choices(_ALPHANUMERIC, k=self.size))
        return bytes(rng.getrandbits(8) for _ in range(self.size))


def parse_object_spec(text: str) -> ObjectSpec:
    """Parse 'I', 'S:<size>' or 'B:<size>'."""
    head, _, size = text.strip().upper().partition(":")
    if head == "I":
        if size:
            raise ValueError("Integer object spec takes no size")
        return ObjectSpec("I")
    if head not in ("S", "B"):
        raise ValueError(f"Unknown object type '{head}'. Use I, S:<size> or B:<size>")
    if not size:
        raise ValueError(f"Object type {head} requires a size, e.g. {head}:100")
    try:
        n = int(size)
    except ValueError:
        raise ValueError(f"Invalid object size '{size}'") from None
    if n <= 0:
        raise ValueError("Object size must be positive")
    return ObjectSpec(head, n)


@dataclass(frozen=True)
class BinGenerator:
    """Generates the (name, value) bins of one synthetic record."""
    object_spec: ObjectSpec = field(default_factory=ObjectSpec)
    n_bins: int = 1

    def generate(self, rng: random.Random, multi_bin: bool) -> list[tuple[str, Any]]:
        count = self.n_bins if multi_bin else 1
        bins = []
        for i in range(count):
            name = DEFAULT_BIN_NAME if i == 0 else f"{DEFAULT_BIN_NAME}_{i}"
            bins.append((name, self.object_spec.generate(rng)))
        return bins


# --- Benchmark configuration ---


@dataclass(frozen=True)
class BenchmarkConfig:
    """Read-only configuration shared by every worker."""
    workload: Workload = Workload.READ_UPDATE
    read_pct: float = DEFAULT_READ_PCT / 100.0
    read_multi_bin_pct: float = DEFAULT_MULTI_BIN_PCT / 100.0
    write_multi_bin_pct: float = DEFAULT_MULTI_BIN_PCT / 100.0
    batch_size: int = 1
    throughput: int = 0  # transactions/sec, 0 = unlimited
    report_not_found: bool = False
    debug: bool = False
    validate: bool = False
    latency: bool = False
    key_start: int = 0
    key_count: int = 100000
    threads: int = 16
    bin_generator: BinGenerator = field(default_factory=BinGenerator)

    @classmethod
    def from_workload(cls, spec: WorkloadSpec, **kwargs: Any) -> BenchmarkConfig:
        return cls(
            workload=spec.kind,
            read_pct=spec.read_pct,
            read_multi_bin_pct=spec.read_multi_bin_pct,
            write_multi_bin_pct=spec.write_multi_bin_pct,
            **kwargs,
        )

    def validate_values(self) -> None:
        """Raise ValueError if any field is out of range."""
        for name in ("read_pct", "read_multi_bin_pct", "write_multi_bin_pct"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.throughput < 0:
            raise ValueError("throughput must not be negative")
        if self.key_count <= 0:
            raise ValueError("key_count must be positive")
        if self.threads <= 0:
            raise ValueError("threads must be positive")
        if self.bin_generator.n_bins <= 0:
            raise ValueError("Number of bins must be positive")
