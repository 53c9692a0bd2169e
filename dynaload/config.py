from __future__ import annotations

import os
from dataclasses import dataclass, field

# MySQL error numbers treated as transient:
# 1037 out of memory, 1205 lock wait timeout, 1213 deadlock,
# 2006 server has gone away, 2013 lost connection during query.
DEFAULT_TRANSIENT_ERROR_CODES = frozenset({1037, 1205, 1213, 2006, 2013})


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    delays: tuple[float, ...] = (1.0, 2.0, 4.0)
    transient_error_codes: frozenset[int] = DEFAULT_TRANSIENT_ERROR_CODES

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if len(self.delays) < self.max_retries:
            raise ValueError(
                f"delays must provide one entry per retry; got {len(self.delays)} "
                f"for max_retries={self.max_retries}"
            )
        if any(d < 0 for d in self.delays):
            raise ValueError("delays must be non-negative")

    @classmethod
    def doubling(cls, max_retries: int = 3, base_s: float = 1.0) -> "RetryPolicy":
        """Exponential backoff: base, 2*base, 4*base, ..."""
        return cls(
            max_retries=max_retries,
            delays=tuple(base_s * (2 ** i) for i in range(max_retries)),
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the given zero-based failed attempt."""
        return self.delays[attempt]


@dataclass(frozen=True)
class DbConfig:
    command_timeout_s: int = 300
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    mapping_path: str | None = None

    def __post_init__(self) -> None:
        if self.command_timeout_s <= 0:
            raise ValueError("command_timeout_s must be > 0")

    @classmethod
    def from_env(cls) -> "DbConfig":
        """
        Build a config from DYNALOAD_* environment variables.

        DYNALOAD_COMMAND_TIMEOUT and DYNALOAD_MAX_RETRIES are integers;
        DYNALOAD_MAPPING_PATH points at a mapping directory or catalog file.
        """
        max_retries = _env_int("DYNALOAD_MAX_RETRIES", 3)
        return cls(
            command_timeout_s=_env_int("DYNALOAD_COMMAND_TIMEOUT", 300),
            retry=RetryPolicy.doubling(max_retries=max_retries),
            mapping_path=os.environ.get("DYNALOAD_MAPPING_PATH") or None,
        )


@dataclass(frozen=True)
class BulkLoadConfig:
    temp_table_prefix: str = "temp_"
    max_rows: int = 100_000

    def __post_init__(self) -> None:
        if self.max_rows <= 0:
            raise ValueError("max_rows must be > 0")
