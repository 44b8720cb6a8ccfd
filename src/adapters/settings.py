from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True, slots=True)
class FleetRuntimeConfig:
    """Process-wide settings, read once by each entry point.

    Env vars:
      - FLEET_STORE: "memory" (default) or "dynamodb"
      - FLEET_SEED_DEMO: seed the in-memory store with the demo fleet (default on)
      - BOOKING_HORIZON_DAYS (default 365)
      - MAX_BOOKING_ATTEMPTS (default 3)
      - RECONCILE_INTERVAL_S (default 900)
      - WORKER_LOOP (default on)
      - LOG_LEVEL (default INFO)
    """

    store_backend: str
    seed_demo: bool
    booking_horizon_days: int
    max_booking_attempts: int
    reconcile_interval_s: int
    worker_loop: bool
    log_level: str

    @staticmethod
    def from_env() -> "FleetRuntimeConfig":
        backend = (os.getenv("FLEET_STORE") or "memory").strip().lower()
        if backend not in {"memory", "dynamodb"}:
            raise RuntimeError(f"Unsupported FLEET_STORE: {backend}")

        return FleetRuntimeConfig(
            store_backend=backend,
            seed_demo=_env_bool("FLEET_SEED_DEMO", True),
            booking_horizon_days=max(1, _env_int("BOOKING_HORIZON_DAYS", 365)),
            max_booking_attempts=max(1, _env_int("MAX_BOOKING_ATTEMPTS", 3)),
            reconcile_interval_s=max(1, _env_int("RECONCILE_INTERVAL_S", 900)),
            worker_loop=_env_bool("WORKER_LOOP", True),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
        )
