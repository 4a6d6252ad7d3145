"""Structured logging for progress sync operations.

Emits one structured log line per coordinator operation (checkpoint,
finalize, cleanup, reset). Machine-parseable via the ``extra`` dict —
standard JSON log formatters pick these up automatically.

Logger name: ``gameprogress.sync.events``

No formatter is configured here — the data is structured, the team
chooses the formatter in production.

Tier 2 service: imports only stdlib.
"""

import logging

logger = logging.getLogger("gameprogress.sync.events")


def log_sync_event(
    *,
    operation: str,
    player_id: str,
    module_id: str,
    status: str,
    latency_ms: float,
    score: int | None = None,
) -> None:
    """Emits a structured INFO log for a finished sync operation.

    Args:
        operation: "checkpoint", "finalize", "cleanup", or "reset".
        player_id: The player the operation ran for.
        module_id: The module the operation ran for.
        status: Outcome status (e.g. "written", "coalesced", "failed").
        latency_ms: Wall-clock duration in milliseconds.
        score: Score carried by the attempt, when there is one.
    """
    logger.info(
        "Sync %s: %s player=%s module=%s score=%s latency=%.0fms",
        operation,
        status,
        player_id,
        module_id,
        score,
        latency_ms,
        extra={
            "operation": operation,
            "player_id": player_id,
            "module_id": module_id,
            "status": status,
            "score": score,
            "latency_ms": latency_ms,
        },
    )
