"""FastAPI dependencies exposing the services owned by the running app."""

from __future__ import annotations

from fastapi import Request

from app.services.annotation_service import AnnotationService
from app.services.formula_queue import FormulaUpdateQueue


def get_formula_queue(request: Request) -> FormulaUpdateQueue:
    return request.app.state.formula_queue


def get_annotation_service(request: Request) -> AnnotationService:
    return request.app.state.annotation_service
