from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check; never authenticated nor rate limited.

    Also reports how many spreadsheets wait for a formula refresh, which is
    the first thing to look at when payment totals seem stale.
    """

    queue = getattr(request.app.state, "formula_queue", None)
    return {
        "status": "ok",
        "formula_queue_depth": queue.depth if queue is not None else 0,
    }
