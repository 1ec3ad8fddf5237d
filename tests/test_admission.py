# tests/test_admission.py
import pytest

from servicedesk.core.errors import NotFound, ValidationError
from servicedesk.services.admission_service import AdmissionService

pytestmark = pytest.mark.asyncio


@pytest.fixture
def admission(session):
    return AdmissionService(session)


async def make_pipeline(admission):
    pipeline = await admission.create_pipeline("Intake", 2025)
    registered = await admission.add_step(pipeline.id, "Registered")
    interview = await admission.add_step(pipeline.id, "Interview")
    accepted = await admission.add_step(pipeline.id, "Accepted", is_final=True)
    return pipeline, registered, interview, accepted


async def test_steps_are_appended_in_order(admission):
    pipeline, registered, interview, accepted = await make_pipeline(admission)
    assert [registered.ord, interview.ord, accepted.ord] == [1, 2, 3]
    assert registered.slug == "registered"

    detail = await admission.describe_pipeline(pipeline.id)
    assert [step["title"] for step in detail["steps"]] == ["Registered", "Interview", "Accepted"]


async def test_reorder_requires_every_step(admission):
    pipeline, registered, interview, accepted = await make_pipeline(admission)

    with pytest.raises(ValidationError):
        await admission.reorder_steps(pipeline.id, [interview.id, registered.id])

    await admission.reorder_steps(pipeline.id, [interview.id, registered.id, accepted.id])
    steps = await admission.list_steps(pipeline.id)
    assert [step.id for step in steps] == [interview.id, registered.id, accepted.id]


async def test_applicant_starts_on_first_step_and_moves(admission, staff):
    pipeline, registered, interview, _ = await make_pipeline(admission)
    applicant = await admission.create_applicant({"pipeline_id": pipeline.id, "name": "Rina"})
    assert applicant.current_step_id == registered.id

    moved = await admission.move_applicant(applicant.id, interview.id, staff, note="docs complete")
    assert moved.current_step_id == interview.id

    history = await admission.applicant_history(applicant.id)
    assert len(history) == 1
    assert history[0].from_step_id == registered.id
    assert history[0].to_step_id == interview.id
    assert history[0].by_user_id == staff.id


async def test_move_to_step_of_other_pipeline_is_rejected(admission, staff):
    pipeline, *_ = await make_pipeline(admission)
    other = await admission.create_pipeline("Transfer", 2025)
    foreign = await admission.add_step(other.id, "Foreign")
    applicant = await admission.create_applicant({"pipeline_id": pipeline.id, "name": "Rina"})

    with pytest.raises(ValidationError):
        await admission.move_applicant(applicant.id, foreign.id, staff)


async def test_pipeline_without_steps_cannot_take_applicants(admission):
    pipeline = await admission.create_pipeline("Empty", 2025)
    with pytest.raises(ValidationError):
        await admission.create_applicant({"pipeline_id": pipeline.id, "name": "Nobody"})


async def test_step_in_use_cannot_be_deleted(admission):
    pipeline, registered, *_ = await make_pipeline(admission)
    await admission.create_applicant({"pipeline_id": pipeline.id, "name": "Rina"})

    with pytest.raises(ValidationError):
        await admission.delete_step(pipeline.id, registered.id)


async def test_delete_pipeline_removes_everything(admission, staff):
    pipeline, _, interview, _ = await make_pipeline(admission)
    applicant = await admission.create_applicant({"pipeline_id": pipeline.id, "name": "Rina"})
    await admission.move_applicant(applicant.id, interview.id, staff)

    await admission.delete_pipeline(pipeline.id)

    with pytest.raises(NotFound):
        await admission.get_pipeline(pipeline.id)
    assert await admission.list_steps(pipeline.id) == []
