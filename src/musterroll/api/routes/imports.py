"""Attendance import endpoints. Every response uses the {ok, data} envelope."""

from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from musterroll.pipeline.lifecycle import BatchLifecycleManager

router = APIRouter(tags=["attendance-import"])


def _manager(request: Request) -> BatchLifecycleManager:
    return request.app.state.manager


def ok(data: Any) -> dict[str, Any]:
    return {"ok": True, "data": jsonable_encoder(data)}


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class CreateBatchRequest(BaseModel):
    organization_id: str
    month: int
    year: int
    source: str = "excel"
    created_by: Optional[str] = None


class BatchRequest(BaseModel):
    batch_id: str


class SaveMappingRequest(BaseModel):
    batch_id: str
    column_mapping: dict[str, Any]


class ValidateOrApplyRequest(BaseModel):
    batch_id: str
    action: Literal["validate", "apply", "reject"] = "validate"
    approver_id: Optional[str] = None


class PeriodRequest(BaseModel):
    organization_id: str
    month: int
    year: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/create-batch")
def create_batch(body: CreateBatchRequest, request: Request) -> dict[str, Any]:
    batch = _manager(request).create(
        body.organization_id, body.month, body.year, source=body.source, created_by=body.created_by
    )
    return ok(batch)


@router.post("/upload-file")
async def upload_file(
    request: Request,
    batch_id: str = Form(...),
    file: UploadFile = File(...),
) -> dict[str, Any]:
    data = await file.read()
    batch = _manager(request).attach_file(batch_id, file.filename or "", data)
    return ok({"batch_id": batch.id, "file_url": batch.file_url})


@router.post("/detect-format")
def detect_format(body: BatchRequest, request: Request) -> dict[str, Any]:
    return ok(_manager(request).detect(body.batch_id))


@router.post("/suggest-mapping")
def suggest_mapping(body: BatchRequest, request: Request) -> dict[str, Any]:
    return ok(_manager(request).suggest_mapping(body.batch_id))


@router.post("/save-mapping")
def save_mapping(body: SaveMappingRequest, request: Request) -> dict[str, Any]:
    return ok(_manager(request).save_mapping(body.batch_id, body.column_mapping))


@router.post("/stage")
def stage(body: BatchRequest, request: Request) -> dict[str, Any]:
    return ok(_manager(request).stage(body.batch_id))


@router.post("/validate-or-apply")
def validate_or_apply(body: ValidateOrApplyRequest, request: Request) -> dict[str, Any]:
    manager = _manager(request)
    if body.action == "apply":
        return ok(manager.apply(body.batch_id, approver_id=body.approver_id))
    if body.action == "reject":
        return ok(manager.reject(body.batch_id))
    result = manager.validate(body.batch_id)
    return ok({
        "passed": result.passed,
        "errors": result.errors,
        "warnings": result.warnings,
    })


@router.post("/discard-batch")
def discard_batch(body: BatchRequest, request: Request) -> dict[str, Any]:
    _manager(request).discard(body.batch_id)
    return ok({"batch_id": body.batch_id, "discarded": True})


@router.post("/get-batch-status")
def get_batch_status(body: PeriodRequest, request: Request) -> dict[str, Any]:
    return ok(_manager(request).latest_for_period(body.organization_id, body.month, body.year))
