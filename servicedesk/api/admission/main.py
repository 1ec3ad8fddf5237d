# servicedesk/api/admission/main.py
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from ...core.audit import log_action
from ...core.users import require_staff, require_supervisor
from ...db.engine import get_session
from ...models.user import User
from ...services.admission_service import AdmissionService
from ..dependencies import get_timeout
from .models import (
    ApplicantCreate,
    ApplicantHistoryRead,
    ApplicantMove,
    ApplicantRead,
    PipelineCreate,
    PipelineDetail,
    PipelineRead,
    StepCreate,
    StepRead,
    StepReorder,
    StepUpdate,
)

router = APIRouter(prefix="/admission")


def get_admission_service(session: AsyncSession = Depends(get_session)) -> AdmissionService:
    return AdmissionService(session, get_timeout())


# --- Pipelines ---


@router.get("/pipelines", response_model=List[PipelineRead])
async def api_list_pipelines(
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.list_pipelines()


@router.post("/pipelines", response_model=PipelineRead, status_code=status.HTTP_201_CREATED)
async def api_create_pipeline(
    body: PipelineCreate,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.create_pipeline(body.name, body.year)


@router.get("/pipelines/{pipeline_id}", response_model=PipelineDetail)
async def api_get_pipeline(
    pipeline_id: int,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.describe_pipeline(pipeline_id)


@router.delete("/pipelines/{pipeline_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_pipeline(
    pipeline_id: int,
    request: Request,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_supervisor),
):
    await service.delete_pipeline(pipeline_id)
    log_action("DELETE", "pipeline", str(pipeline_id), user=current_user, request=request)


# --- Steps ---


@router.post("/pipelines/{pipeline_id}/steps", response_model=StepRead, status_code=status.HTTP_201_CREATED)
async def api_add_step(
    pipeline_id: int,
    body: StepCreate,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.add_step(pipeline_id, body.title, body.slug, body.is_final)


@router.put("/pipelines/{pipeline_id}/steps", response_model=List[StepRead])
async def api_reorder_steps(
    pipeline_id: int,
    body: StepReorder,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.reorder_steps(pipeline_id, body.step_ids)


@router.put("/pipelines/{pipeline_id}/steps/{step_id}", response_model=StepRead)
async def api_update_step(
    pipeline_id: int,
    step_id: int,
    body: StepUpdate,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.update_step(pipeline_id, step_id, body.model_dump(exclude_unset=True))


@router.delete("/pipelines/{pipeline_id}/steps/{step_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_step(
    pipeline_id: int,
    step_id: int,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    await service.delete_step(pipeline_id, step_id)


# --- Applicants ---


@router.get("/pipelines/{pipeline_id}/applicants", response_model=List[ApplicantRead])
async def api_list_applicants(
    pipeline_id: int,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.list_applicants(pipeline_id)


@router.post("/applicants", response_model=ApplicantRead, status_code=status.HTTP_201_CREATED)
async def api_create_applicant(
    body: ApplicantCreate,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.create_applicant(body.model_dump())


@router.post("/applicants/{applicant_id}/move", response_model=ApplicantRead)
async def api_move_applicant(
    applicant_id: int,
    body: ApplicantMove,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.move_applicant(applicant_id, body.to_step_id, current_user, body.note)


@router.get("/applicants/{applicant_id}/history", response_model=List[ApplicantHistoryRead])
async def api_applicant_history(
    applicant_id: int,
    service: AdmissionService = Depends(get_admission_service),
    current_user: User = Depends(require_staff),
):
    return await service.applicant_history(applicant_id)
