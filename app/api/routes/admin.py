"""Admin endpoints for the background formula update queue."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_annotation_service, get_formula_queue
from app.core.auth import require_sheets_access_token, verify_admin_api_key
from app.core.rate_limit import rate_limit
from app.schemas.annotations import FormulaRefreshRequest, FormulaRefreshResponse
from app.schemas.queue import LastUpdateEntry, QueueEntry, QueueMetricsResponse
from app.services.annotation_service import AnnotationService
from app.services.formula_queue import FormulaUpdateQueue

router = APIRouter(prefix="/admin/annotations", tags=["Admin"])


@router.get(
    "/queue",
    response_model=QueueMetricsResponse,
    dependencies=[Depends(rate_limit("admin:annotations:queue:GET")), Depends(verify_admin_api_key)],
)
async def get_queue_metrics(
    queue: Annotated[FormulaUpdateQueue, Depends(get_formula_queue)],
) -> QueueMetricsResponse:
    """Return queue depth, pending entries and last refresh time per spreadsheet."""
    return QueueMetricsResponse(
        queue_depth=queue.depth,
        queue=[
            QueueEntry(spreadsheet_id=e["key"], enqueued_at=e["enqueued_at"])
            for e in queue.entries()
        ],
        last_updates=[
            LastUpdateEntry(spreadsheet_id=u["key"], updated_at=u["updated_at"])
            for u in queue.last_updates()
        ],
        armed=queue.is_armed,
        stats=queue.stats(),
    )


@router.post(
    "/formulas",
    response_model=FormulaRefreshResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[
        Depends(rate_limit("admin:annotations:formulas:POST", limit=2, window_ms=3000)),
        Depends(verify_admin_api_key),
    ],
)
async def refresh_formulas(
    body: FormulaRefreshRequest,
    access_token: Annotated[str, Depends(require_sheets_access_token)],
    service: Annotated[AnnotationService, Depends(get_annotation_service)],
) -> FormulaRefreshResponse:
    """Queue a payment formula refresh for a spreadsheet."""
    service.request_formula_refresh(body.spreadsheet_id, access_token)
    return FormulaRefreshResponse(spreadsheet_id=body.spreadsheet_id)
