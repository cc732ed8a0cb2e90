from discount_engine.workers.tasks.discount_maintenance import run_discount_reservation_sweep

__all__ = [
    "run_discount_reservation_sweep",
]
