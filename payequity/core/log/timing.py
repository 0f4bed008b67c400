"""Timing helpers to log duration and throughput of imports and risk runs."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import perf_counter
from typing import Iterator, Optional


@dataclass
class _Timer:
    label: str
    logger: logging.Logger
    level: int
    unit: str
    expected_total: Optional[int]
    count: int = 0
    failures: int = 0
    start: float = field(default_factory=perf_counter)

    def add(self, amount: int = 1) -> None:
        self.count += amount

    def fail(self, amount: int = 1) -> None:
        self.failures += amount

    def set_total(self, total: int) -> None:
        self.expected_total = total

    @property
    def elapsed(self) -> float:
        return perf_counter() - self.start

    def _resolved_total(self) -> Optional[int]:
        return self.expected_total if self.expected_total is not None else self.count

    def finish(self, success: bool = True) -> None:
        elapsed = self.elapsed
        total = self._resolved_total()

        if success:
            message = f"{self.label} completed in {elapsed:.2f}s"
            if total is not None:
                message += f" ({total:,} {self.unit}"
                if elapsed > 0 and total:
                    message += f" @ {total / elapsed:,.0f} {self.unit}/s"
                message += ")"
            if self.failures:
                message += f" with {self.failures:,} failed {self.unit}"
            self.logger.log(self.level, message)
        else:
            fail_message = f"{self.label} failed after {elapsed:.2f}s"
            if total is not None:
                fail_message += f" ({total:,} {self.unit})"
            self.logger.error(fail_message)


@contextmanager
def timeit(
    label: str,
    *,
    logger: Optional[logging.Logger] = None,
    level: int = logging.INFO,
    unit: str = "items",
    total: Optional[int] = None,
) -> Iterator[_Timer]:
    """Time the enclosed block and log its duration and throughput.

    Args:
        label: Description of the operation being timed
        logger: Logger instance to use (defaults to "payequity.timer")
        level: Logging level for the success message
        unit: Unit for throughput calculation (e.g. "rows", "groups")
        total: Expected total count; otherwise the value accumulated via ``add``
    """
    timer = _Timer(
        label=label,
        logger=logger or logging.getLogger("payequity.timer"),
        level=level,
        unit=unit,
        expected_total=total,
    )
    try:
        yield timer
    except Exception:
        timer.finish(success=False)
        raise
    else:
        timer.finish(success=True)
