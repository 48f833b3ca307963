"""
Upload API Endpoints
====================

FastAPI router for per-side document upload.

- POST /api/upload/side-a  - Replace side A's description and documents
- POST /api/upload/side-b  - Replace side B's description and documents

Multipart fields: caseId, description, documents (repeatable).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from .schemas import Side
from .workflow import CaseWorkflow, UploadedFile

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])


def get_workflow(request: Request) -> CaseWorkflow:
    return request.app.state.workflow


async def _buffer_files(files: Optional[List[UploadFile]], max_size: int) -> List[UploadedFile]:
    """Read uploads into memory, at most max_size + 1 bytes each"""
    buffered = []
    for up in files or []:
        data = await up.read(max_size + 1)
        buffered.append(UploadedFile(
            filename=up.filename or "document",
            data=data,
            content_type=up.content_type,
        ))
    return buffered


async def _upload_side(
    side: Side,
    workflow: CaseWorkflow,
    case_id: Optional[str],
    description: Optional[str],
    documents: Optional[List[UploadFile]],
) -> dict:
    files = await _buffer_files(documents, workflow.settings.max_file_size)
    logger.info(f"Upload for case {case_id} side {side.value}: {len(files)} file(s)")

    result = await workflow.attach_documents(case_id, side, description, files)
    return {
        "message": f"Documents uploaded and processed for Side {side.value}",
        **result.to_json_dict(),
    }


@router.post("/upload/side-a", summary="Upload documents for side A")
async def upload_side_a(
    caseId: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    documents: Optional[List[UploadFile]] = File(None),
    workflow: CaseWorkflow = Depends(get_workflow),
):
    return await _upload_side(Side.A, workflow, caseId, description, documents)


@router.post("/upload/side-b", summary="Upload documents for side B")
async def upload_side_b(
    caseId: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    documents: Optional[List[UploadFile]] = File(None),
    workflow: CaseWorkflow = Depends(get_workflow),
):
    return await _upload_side(Side.B, workflow, caseId, description, documents)
