from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_annotation_service
from app.core.auth import require_sheets_access_token, verify_api_key
from app.core.rate_limit import rate_limit
from app.schemas.annotations import AnnotationLogRequest, AnnotationLogResponse
from app.services.annotation_service import AnnotationService

router = APIRouter(tags=["Annotations"])


@router.post(
    "/annotations",
    response_model=AnnotationLogResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(rate_limit("annotations:POST")), Depends(verify_api_key)],
)
async def log_annotation(
    body: AnnotationLogRequest,
    access_token: Annotated[str, Depends(require_sheets_access_token)],
    service: Annotated[AnnotationService, Depends(get_annotation_service)],
) -> AnnotationLogResponse:
    """Log an annotation row to the spreadsheet.

    The row is appended synchronously. The payment formula refresh it implies
    is queued and happens in the background, so the response only confirms
    that the refresh was requested.

    Raises:
        RateLimitExceededError: 429 when the caller exceeded the route quota.
        AuthenticationAppError: 403 when logging a row for another annotator.
        SheetsAppError: 502 when the spreadsheet store rejected the append.
    """
    await service.log_annotation(access_token, body)
    return AnnotationLogResponse(spreadsheet_id=body.spreadsheet_id)
