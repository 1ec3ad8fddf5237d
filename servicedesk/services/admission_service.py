# servicedesk/services/admission_service.py
"""
Admission board: pipelines of ordered steps, applicants placed on the first
step when they are registered and moved between steps by staff.
"""
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.errors import NotFound, ValidationError
from ..db.engine import unit_of_work
from ..models.admission import Applicant, ApplicantHistory, Pipeline, PipelineStep
from ..models.user import User


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "step"


class AdmissionService:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self.session = session
        self.timeout = timeout

    # --- Pipelines ---

    async def list_pipelines(self) -> List[Pipeline]:
        statement = select(Pipeline).order_by(col(Pipeline.year).desc(), col(Pipeline.name))
        result = await self.session.exec(statement)
        return list(result.all())

    async def get_pipeline(self, pipeline_id: int) -> Pipeline:
        pipeline = await self.session.get(Pipeline, pipeline_id)
        if not pipeline:
            raise NotFound(f"Pipeline {pipeline_id} not found")
        return pipeline

    async def describe_pipeline(self, pipeline_id: int) -> Dict[str, Any]:
        pipeline = await self.get_pipeline(pipeline_id)
        data = pipeline.model_dump()
        data["steps"] = [step.model_dump() for step in await self.list_steps(pipeline_id)]
        return data

    async def create_pipeline(self, name: str, year: int) -> Pipeline:
        name = (name or "").strip()
        if not name or not year:
            raise ValidationError("name and year are required")
        async with unit_of_work(self.session, self.timeout):
            pipeline = Pipeline(name=name, year=year)
            self.session.add(pipeline)
        return pipeline

    async def delete_pipeline(self, pipeline_id: int) -> None:
        """Removes the pipeline with its steps, applicants and their history."""
        pipeline = await self.get_pipeline(pipeline_id)
        async with unit_of_work(self.session, self.timeout):
            applicant_ids = select(Applicant.id).where(Applicant.pipeline_id == pipeline_id)
            await self.session.execute(
                delete(ApplicantHistory).where(col(ApplicantHistory.applicant_id).in_(applicant_ids))
            )
            await self.session.execute(delete(Applicant).where(col(Applicant.pipeline_id) == pipeline_id))
            await self.session.execute(delete(PipelineStep).where(col(PipelineStep.pipeline_id) == pipeline_id))
            await self.session.delete(pipeline)

    # --- Steps ---

    async def list_steps(self, pipeline_id: int) -> List[PipelineStep]:
        statement = (
            select(PipelineStep)
            .where(PipelineStep.pipeline_id == pipeline_id)
            .order_by(col(PipelineStep.ord), col(PipelineStep.id))
        )
        result = await self.session.exec(statement)
        return list(result.all())

    async def add_step(
        self, pipeline_id: int, title: str, slug: Optional[str] = None, is_final: bool = False
    ) -> PipelineStep:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Step title is required")
        await self.get_pipeline(pipeline_id)
        async with unit_of_work(self.session, self.timeout):
            steps = await self.list_steps(pipeline_id)
            step = PipelineStep(
                pipeline_id=pipeline_id,
                title=title,
                slug=slugify(slug or title),
                ord=max((s.ord for s in steps), default=0) + 1,
                is_final=is_final,
            )
            self.session.add(step)
        return step

    async def update_step(self, pipeline_id: int, step_id: int, data: Dict[str, Any]) -> PipelineStep:
        """Edits title, slug or is_final; the step keeps its position."""
        step = await self._get_step(pipeline_id, step_id)
        title = data.get("title")
        if title is not None:
            title = title.strip()
            if not title:
                raise ValidationError("Step title is required")
        async with unit_of_work(self.session, self.timeout):
            if title is not None:
                step.title = title
            if data.get("slug") is not None:
                step.slug = slugify(data["slug"])
            if data.get("is_final") is not None:
                step.is_final = data["is_final"]
            self.session.add(step)
        return step

    async def reorder_steps(self, pipeline_id: int, step_ids: List[int]) -> List[PipelineStep]:
        """Assigns ord 1..n following `step_ids`, which must list every step once."""
        await self.get_pipeline(pipeline_id)
        steps = {step.id: step for step in await self.list_steps(pipeline_id)}
        if len(step_ids) != len(set(step_ids)) or set(step_ids) != set(steps):
            raise ValidationError("step_ids must list every step of the pipeline exactly once")
        async with unit_of_work(self.session, self.timeout):
            for position, step_id in enumerate(step_ids, start=1):
                steps[step_id].ord = position
                self.session.add(steps[step_id])
        return [steps[step_id] for step_id in step_ids]

    async def delete_step(self, pipeline_id: int, step_id: int) -> None:
        step = await self._get_step(pipeline_id, step_id)
        result = await self.session.exec(
            select(Applicant.id).where(Applicant.current_step_id == step_id).limit(1)
        )
        if result.first() is not None:
            raise ValidationError("Move the applicants off this step before deleting it")
        async with unit_of_work(self.session, self.timeout):
            await self.session.delete(step)

    async def _get_step(self, pipeline_id: int, step_id: int) -> PipelineStep:
        step = await self.session.get(PipelineStep, step_id)
        if not step or step.pipeline_id != pipeline_id:
            raise NotFound(f"Step {step_id} not found in pipeline {pipeline_id}")
        return step

    # --- Applicants ---

    async def list_applicants(self, pipeline_id: int) -> List[Applicant]:
        await self.get_pipeline(pipeline_id)
        statement = (
            select(Applicant)
            .where(Applicant.pipeline_id == pipeline_id)
            .order_by(col(Applicant.created_at).desc(), col(Applicant.id).desc())
        )
        result = await self.session.exec(statement)
        return list(result.all())

    async def get_applicant(self, applicant_id: int) -> Applicant:
        applicant = await self.session.get(Applicant, applicant_id)
        if not applicant:
            raise NotFound(f"Applicant {applicant_id} not found")
        return applicant

    async def create_applicant(self, data: Dict[str, Any]) -> Applicant:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Applicant name is required")
        pipeline = await self.get_pipeline(data["pipeline_id"])
        steps = await self.list_steps(pipeline.id)
        if not steps:
            raise ValidationError("The pipeline has no steps yet")
        async with unit_of_work(self.session, self.timeout):
            applicant = Applicant(
                pipeline_id=pipeline.id,
                current_step_id=steps[0].id,
                name=name,
                nisn=data.get("nisn"),
                birthdate=data.get("birthdate"),
                parent_phone=data.get("parent_phone"),
                email=data.get("email"),
                address=data.get("address"),
            )
            self.session.add(applicant)
        return applicant

    async def move_applicant(
        self, applicant_id: int, to_step_id: int, actor: User, note: Optional[str] = None
    ) -> Applicant:
        applicant = await self.get_applicant(applicant_id)
        step = await self.session.get(PipelineStep, to_step_id)
        if not step or step.pipeline_id != applicant.pipeline_id:
            raise ValidationError("Target step does not belong to the applicant's pipeline")

        async with unit_of_work(self.session, self.timeout):
            now = datetime.utcnow()
            self.session.add(
                ApplicantHistory(
                    applicant_id=applicant.id,
                    from_step_id=applicant.current_step_id,
                    to_step_id=step.id,
                    by_user_id=actor.id,
                    note=note,
                    moved_at=now,
                )
            )
            applicant.current_step_id = step.id
            applicant.updated_at = now
            self.session.add(applicant)
        return applicant

    async def applicant_history(self, applicant_id: int) -> List[ApplicantHistory]:
        await self.get_applicant(applicant_id)
        statement = (
            select(ApplicantHistory)
            .where(ApplicantHistory.applicant_id == applicant_id)
            .order_by(col(ApplicantHistory.moved_at).desc(), col(ApplicantHistory.id).desc())
        )
        result = await self.session.exec(statement)
        return list(result.all())
