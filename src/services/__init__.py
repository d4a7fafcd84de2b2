from src.services import (
    balance_service,
    completion_service,
    ledger_service,
    task_service,
    verification_service,
)


__all__ = [
    "balance_service",
    "completion_service",
    "ledger_service",
    "task_service",
    "verification_service",
]
