"""
config.py
=========
Tunable constants for intersection admission.

Every value lives in the frozen :class:`PolicyConfig` dataclass so that
experiments can swap configurations without touching code.  Values can be
overridden from the environment via :meth:`PolicyConfig.from_env`.
This module is an import-safe leaf; it never imports from other project
modules.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

_ENV_PREFIX = "MICROSIM_"


@dataclass(frozen=True)
class PolicyConfig:
    """Immutable bag of every tunable admission parameter."""

    timestep_s: float = 0.1
    """Simulated seconds per tick."""

    speed_limit_mps: float = 8.9408
    """Speed limit (20 mph) used for every crossing-time estimate."""

    stop_sign_wait_s: float = 1.5
    """Minimum dwell at a stop sign before a ``STOP`` turn may be admitted."""

    def __post_init__(self) -> None:
        if self.timestep_s <= 0.0:
            raise ValueError(f"timestep_s must be positive, got {self.timestep_s}")
        if self.speed_limit_mps <= 0.0:
            raise ValueError(
                f"speed_limit_mps must be positive, got {self.speed_limit_mps}"
            )
        if self.stop_sign_wait_s < 0.0:
            raise ValueError(
                f"stop_sign_wait_s must be non-negative, got {self.stop_sign_wait_s}"
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> PolicyConfig:
        """Build a config, overriding defaults from ``MICROSIM_*`` variables.

        ``MICROSIM_STOP_SIGN_WAIT_S=2.0`` overrides ``stop_sign_wait_s`` and
        so on.  Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(cls):
            raw = environ.get(_ENV_PREFIX + f.name.upper())
            if raw is not None:
                overrides[f.name] = float(raw)
        return cls(**overrides)


DEFAULT_CONFIG = PolicyConfig()
