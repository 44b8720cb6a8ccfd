from __future__ import annotations

import logging
import time

from src.adapters.api.dependencies import build_fleet_store
from src.adapters.settings import FleetRuntimeConfig
from src.app.services.status_reconciler import StatusReconciler

logger = logging.getLogger(__name__)


def main() -> None:
    config = FleetRuntimeConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = build_fleet_store(config)
    reconciler = StatusReconciler(trips=store, vehicles=store)
    logger.info(
        "Status reconciler started (backend=%s, interval=%ss)",
        config.store_backend,
        config.reconcile_interval_s,
    )

    while True:
        try:
            reconciler.reconcile()
        except Exception:
            # A failed sweep is retried on the next tick; both sweeps are idempotent.
            logger.exception("Status reconciliation failed")
            if not config.worker_loop:
                raise

        if not config.worker_loop:
            return
        time.sleep(config.reconcile_interval_s)


if __name__ == "__main__":
    main()
