"""Pydantic schemas for annotation logging."""

from typing import Literal

from pydantic import BaseModel, Field


class AnnotationRow(BaseModel):
    """One row of the ``Annotations_Log`` sheet.

    Field order matches the sheet columns A..R.
    """

    row_id: str = Field(..., min_length=1, description="Source CSV row identifier.")
    annotator_id: str = Field(..., min_length=1, description="Id of the annotator logging the row.")
    claim_text: str = Field("", description="Claim text as annotated.")
    source_links: list[str] = Field(default_factory=list, description="Supporting source links.")
    translation: str | None = Field(None, description="Translated claim text, if any.")
    start_time: str = Field(..., description="ISO-8601 time the annotation started.")
    end_time: str | None = Field(None, description="ISO-8601 time the annotation ended.")
    duration_minutes: int | None = Field(None, ge=0, description="Time spent, in minutes.")
    status: Literal["in-progress", "completed", "verified"] = "completed"
    verified_by: str | None = None
    verdict: str | None = None
    source_url: str | None = None
    claim_links: list[str] = Field(default_factory=list)
    claim_text_ha: str | None = None
    claim_text_yo: str | None = None
    article_body_ha: str | None = None
    article_body_yo: str | None = None
    translation_language: Literal["ha", "yo"] | None = None

    def to_values(self) -> list[str | int]:
        """Flatten the row into sheet cell values (A..R)."""
        return [
            self.row_id,
            self.annotator_id,
            self.claim_text,
            "; ".join(self.source_links),
            self.translation or "",
            self.start_time,
            self.end_time or "",
            self.duration_minutes if self.duration_minutes is not None else "",
            self.status,
            self.verified_by or "",
            self.verdict or "",
            self.source_url or "",
            "; ".join(self.claim_links),
            self.claim_text_ha or "",
            self.claim_text_yo or "",
            self.article_body_ha or "",
            self.article_body_yo or "",
            self.translation_language or "",
        ]


class AnnotationLogRequest(BaseModel):
    """Request body for logging an annotation."""

    spreadsheet_id: str = Field(..., min_length=1, description="Target spreadsheet id.")
    annotation: AnnotationRow
    acting_annotator_id: str | None = Field(
        None,
        description="When set, the caller may only log rows for this annotator.",
    )


class AnnotationLogResponse(BaseModel):
    status: Literal["logged"] = "logged"
    spreadsheet_id: str
    formula_update: Literal["queued"] = "queued"


class FormulaRefreshRequest(BaseModel):
    spreadsheet_id: str = Field(..., min_length=1)


class FormulaRefreshResponse(BaseModel):
    spreadsheet_id: str
    formula_update: Literal["queued"] = "queued"
