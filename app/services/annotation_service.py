"""Annotation logging service.

Appends annotations to the spreadsheet store and defers the derived payment
formula refresh to the background queue instead of running it inline.
"""

import logging

from app.adapters.sheets.base import AbstractSheetsClient
from app.core.errors import AuthenticationAppError, ValidationAppError
from app.schemas.annotations import AnnotationLogRequest
from app.services.formula_queue import FormulaUpdateQueue

logger = logging.getLogger(__name__)


class AnnotationService:
    """Log annotations and keep payment formulas eventually consistent."""

    def __init__(self, sheets: AbstractSheetsClient, formula_queue: FormulaUpdateQueue) -> None:
        self.sheets = sheets
        self.formula_queue = formula_queue

    async def log_annotation(self, access_token: str, request: AnnotationLogRequest) -> None:
        """Append the annotation row, then queue a formula refresh.

        Args:
            access_token: Spreadsheet store token of the acting user.
            request: Validated request body.

        Raises:
            ValidationAppError: If the access token is empty.
            AuthenticationAppError: If the caller logs a row for another annotator.
            SheetsAppError: If appending the row fails.
        """
        if not access_token:
            raise ValidationAppError(
                code="missing_access_token",
                message="A spreadsheet access token is required to log annotations",
            )

        annotation = request.annotation
        if request.acting_annotator_id and request.acting_annotator_id != annotation.annotator_id:
            logger.warning(
                "annotation.foreign_annotator_rejected",
                extra={"spreadsheet_id": request.spreadsheet_id},
            )
            raise AuthenticationAppError(
                code="annotator_mismatch",
                message="Annotators can only log their own annotations",
            )

        await self.sheets.append_annotation(access_token, request.spreadsheet_id, annotation)
        logger.info(
            "annotation.logged",
            extra={
                "spreadsheet_id": request.spreadsheet_id,
                "row_id": annotation.row_id,
                "annotation_status": annotation.status,
            },
        )

        self.formula_queue.schedule(request.spreadsheet_id, access_token)

    def request_formula_refresh(self, spreadsheet_id: str, access_token: str) -> None:
        """Queue a payment formula refresh without logging anything."""
        self.formula_queue.schedule(spreadsheet_id, access_token)
        logger.info("annotation.formula_refresh_requested", extra={"spreadsheet_id": spreadsheet_id})
