# tests/test_queue_service.py
import asyncio

import pytest

from servicedesk.core.constants import HistoryAction, QueueStatus
from servicedesk.core.errors import (
    ConflictLostRace,
    InvalidStateTransition,
    NotFound,
    StoreUnavailable,
    ValidationError,
)
from servicedesk.models.service import Service
from servicedesk.models.ticket import QueueTicket
from servicedesk.models.user import User
from servicedesk.services.queue_service import QueueService

pytestmark = pytest.mark.asyncio


async def positions(queue, service_id):
    return {row["number"]: row["position"] for row in await queue.waiting_line(service_id)}


async def test_full_lifecycle_then_cancel_is_rejected(queue, staff, desk_service):
    ticket = await queue.create_ticket(desk_service.id)
    assert ticket.status == QueueStatus.WAITING.value
    assert ticket.number == "ADM001"
    assert (await queue.describe(ticket))["position"] == 1

    ticket = await queue.claim(ticket.id, staff)
    assert ticket.status == QueueStatus.CALLED.value
    assert ticket.claimed_by == staff.id
    assert ticket.called_at is not None

    ticket = await queue.start(ticket.id, staff)
    assert ticket.status == QueueStatus.IN_SERVICE.value
    assert ticket.timer_start is not None

    ticket = await queue.resolve(ticket.id, "fixed", staff)
    assert ticket.status == QueueStatus.DONE.value
    assert ticket.timer_end is not None
    assert ticket.resolved_at is not None
    assert ticket.notes == "fixed"

    with pytest.raises(InvalidStateTransition):
        await queue.cancel(ticket.id, "changed my mind", staff)

    unchanged = await queue.get_ticket(ticket.id)
    assert unchanged.status == QueueStatus.DONE.value
    assert unchanged.cancel_reason is None


async def test_numbers_count_per_service(queue, session, desk_service):
    other = Service(name="Payments", code_prefix="PAY")
    session.add(other)
    await session.commit()

    first = await queue.create_ticket(desk_service.id)
    second = await queue.create_ticket(desk_service.id)
    payment = await queue.create_ticket(other.id)

    assert [first.number, second.number, payment.number] == ["ADM001", "ADM002", "PAY001"]


async def test_create_for_unknown_or_inactive_service(queue, session, desk_service):
    with pytest.raises(NotFound):
        await queue.create_ticket(9999)

    desk_service.is_active = False
    session.add(desk_service)
    await session.commit()
    with pytest.raises(NotFound):
        await queue.create_ticket(desk_service.id)


async def test_claim_front_recomputes_positions(queue, staff, desk_service):
    a = await queue.create_ticket(desk_service.id)
    b = await queue.create_ticket(desk_service.id)
    assert await positions(queue, desk_service.id) == {a.number: 1, b.number: 2}

    claimed = await queue.claim_next(desk_service.id, staff)
    assert claimed.id == a.id

    line = await queue.waiting_line(desk_service.id)
    assert [(row["id"], row["position"], row["ahead"]) for row in line] == [(b.id, 1, 0)]


async def test_requeue_goes_behind_everyone_waiting(queue, staff, desk_service):
    a = await queue.create_ticket(desk_service.id)
    await queue.claim(a.id, staff)
    c = await queue.create_ticket(desk_service.id)
    d = await queue.create_ticket(desk_service.id)
    waiting_before = len(await queue.waiting_line(desk_service.id))

    requeued = await queue.requeue(a.id, staff, notes="customer stepped out")

    assert requeued.status == QueueStatus.WAITING.value
    assert requeued.claimed_by is None
    assert requeued.called_at is None
    order = [row["id"] for row in await queue.waiting_line(desk_service.id)]
    assert order == [c.id, d.id, a.id]
    assert (await queue.describe(requeued))["position"] == waiting_before + 1


async def test_requeue_from_in_service_clears_timer(queue, staff, desk_service):
    ticket = await queue.create_ticket(desk_service.id)
    await queue.claim(ticket.id, staff)
    await queue.start(ticket.id, staff)

    ticket = await queue.requeue(ticket.id, staff)
    assert ticket.timer_start is None
    assert ticket.resolved_at is None


async def test_resolve_requires_notes(queue, staff, desk_service):
    ticket = await queue.create_ticket(desk_service.id)
    await queue.claim(ticket.id, staff)
    await queue.start(ticket.id, staff)

    with pytest.raises(ValidationError):
        await queue.resolve(ticket.id, "   ", staff)
    assert (await queue.get_ticket(ticket.id)).status == QueueStatus.IN_SERVICE.value


async def test_cancel_requires_reason_and_stores_it(queue, staff, desk_service):
    ticket = await queue.create_ticket(desk_service.id)
    with pytest.raises(ValidationError):
        await queue.cancel(ticket.id, "", staff)

    ticket = await queue.cancel(ticket.id, "duplicate ticket", staff)
    assert ticket.status == QueueStatus.CANCELED.value
    assert ticket.cancel_reason == "duplicate ticket"
    assert ticket.resolved_at is None


async def test_no_show_is_terminal(queue, staff, desk_service):
    ticket = await queue.create_ticket(desk_service.id)
    with pytest.raises(InvalidStateTransition):
        await queue.no_show(ticket.id, staff)

    await queue.claim(ticket.id, staff)
    ticket = await queue.no_show(ticket.id, staff)
    assert ticket.status == QueueStatus.NO_SHOW.value

    with pytest.raises(InvalidStateTransition):
        await queue.requeue(ticket.id, staff)


async def test_change_status_maps_target_to_action(queue, staff, desk_service):
    ticket = await queue.create_ticket(desk_service.id)
    ticket = await queue.change_status(ticket.id, QueueStatus.CALLED, staff)
    assert ticket.claimed_by == staff.id

    with pytest.raises(InvalidStateTransition):
        await queue.change_status(ticket.id, QueueStatus.DONE, staff, notes="skip ahead")

    ticket = await queue.change_status(ticket.id, QueueStatus.CANCELED, staff, reason="left")
    assert ticket.status == QueueStatus.CANCELED.value


async def test_only_listed_transitions_succeed(queue, staff, desk_service):
    attempts = [
        ("start", False),
        ("resolve", False),
        ("claim", True),
        ("claim", False),
        ("resolve", False),
        ("start", True),
        ("start", False),
        ("resolve", True),
        ("requeue", False),
        ("no_show", False),
        ("cancel", False),
    ]
    ticket = await queue.create_ticket(desk_service.id)
    for name, should_succeed in attempts:
        before = (await queue.get_ticket(ticket.id)).status
        kwargs = {"resolve": {"notes": "ok"}, "cancel": {"reason": "x"}}.get(name, {})
        call = getattr(queue, name)
        if should_succeed:
            await call(ticket.id, actor=staff, **kwargs)
        else:
            with pytest.raises(InvalidStateTransition):
                await call(ticket.id, actor=staff, **kwargs)
            assert (await queue.get_ticket(ticket.id)).status == before


async def test_history_one_entry_per_mutation(queue, staff, desk_service):
    ticket = await queue.create_ticket(desk_service.id)
    await queue.claim(ticket.id, staff)
    with pytest.raises(InvalidStateTransition):
        await queue.resolve(ticket.id, "too early", staff)
    await queue.start(ticket.id, staff)
    await queue.resolve(ticket.id, "fixed", staff)

    history = await queue.list_history(ticket.id)
    assert [entry.action for entry in history] == [
        HistoryAction.STATUS_CHANGED.value,
        HistoryAction.STATUS_CHANGED.value,
        HistoryAction.STATUS_CHANGED.value,
        HistoryAction.CREATED.value,
    ]
    assert [(e.old_value, e.new_value) for e in history[:3]] == [
        ("IN_SERVICE", "DONE"),
        ("CALLED", "IN_SERVICE"),
        ("WAITING", "CALLED"),
    ]
    timestamps = [entry.changed_at for entry in reversed(history)]
    assert timestamps == sorted(timestamps)
    assert history[0].changed_by == "alice"
    assert history[-1].changed_by == "kiosk"


async def test_delete_keeps_history(queue, supervisor, desk_service, backend):
    ticket = await queue.create_ticket(desk_service.id)
    await queue.delete_ticket(ticket.id, supervisor)

    with pytest.raises(NotFound):
        await queue.get_ticket(ticket.id)
    history = await queue.list_history(ticket.id)
    assert history[0].action == HistoryAction.DELETED.value
    assert history[0].old_value == QueueStatus.WAITING.value
    assert backend.published[-1][1]["action"] == "delete"
    assert backend.published[-1][1]["newStatus"] is None


async def test_history_of_unknown_ticket(queue):
    with pytest.raises(NotFound):
        await queue.list_history(12345)


async def test_lost_race_on_claim(database, queue, fanout, staff, other_staff, desk_service, monkeypatch):
    ticket = await queue.create_ticket(desk_service.id)
    stale = QueueTicket(**ticket.model_dump())
    await queue.claim(ticket.id, staff)

    async with database.session() as other_session:
        rival = QueueService(other_session, fanout)
        real_load = rival._load
        calls = []

        async def stale_then_real(ticket_id):
            calls.append(ticket_id)
            if len(calls) == 1:
                return stale
            return await real_load(ticket_id)

        monkeypatch.setattr(rival, "_load", stale_then_real)
        with pytest.raises(ConflictLostRace):
            await rival.claim(ticket.id, other_staff)

    current = await queue.get_ticket(ticket.id)
    assert current.status == QueueStatus.CALLED.value
    assert current.claimed_by == staff.id
    status_changes = [e for e in await queue.list_history(ticket.id) if e.action == "status_changed"]
    assert len(status_changes) == 1


async def test_claim_next_skips_front_claimed_elsewhere(
    database, queue, fanout, staff, other_staff, desk_service, monkeypatch
):
    a = await queue.create_ticket(desk_service.id)
    b = await queue.create_ticket(desk_service.id)
    # The lost claim rolls back the session and expires what it holds
    a_id, b_id, service_id = a.id, b.id, desk_service.id
    staff_id, other_staff_id = staff.id, other_staff.id

    real_front = queue._front_of_line
    calls = []

    async def rival_claims_the_front(front_service_id):
        candidate = await real_front(front_service_id)
        calls.append(candidate.id if candidate else None)
        if len(calls) == 1:
            async with database.session() as other_session:
                rival = QueueService(other_session, fanout)
                await rival.claim(candidate.id, await other_session.get(User, other_staff_id))
        return candidate

    monkeypatch.setattr(queue, "_front_of_line", rival_claims_the_front)
    claimed = await queue.claim_next(service_id, staff)

    assert calls == [a_id, b_id]
    assert claimed.id == b_id
    assert claimed.status == QueueStatus.CALLED.value
    assert claimed.claimed_by == staff_id
    front = await queue.get_ticket(a_id)
    assert front.claimed_by == other_staff_id


async def test_claim_next_survives_rollback_of_lost_claim(
    database, queue, fanout, staff, other_staff, desk_service, monkeypatch
):
    a = await queue.create_ticket(desk_service.id)
    b = await queue.create_ticket(desk_service.id)
    a_id, b_id, service_id = a.id, b.id, desk_service.id
    staff_id, other_staff_id = staff.id, other_staff.id

    real_load = queue._load
    loads = []

    async def rival_claims_after_load(ticket_id):
        ticket = await real_load(ticket_id)
        loads.append(ticket_id)
        if len(loads) == 1:
            # Our copy still says WAITING, the store no longer does
            async with database.session() as other_session:
                rival = QueueService(other_session, fanout)
                await rival.claim(ticket_id, await other_session.get(User, other_staff_id))
        return ticket

    monkeypatch.setattr(queue, "_load", rival_claims_after_load)
    claimed = await queue.claim_next(service_id, staff)

    assert loads[:2] == [a_id, b_id]
    assert claimed.id == b_id
    assert claimed.claimed_by == staff_id
    front = await queue.get_ticket(a_id)
    assert front.claimed_by == other_staff_id
    status_changes = [e for e in await queue.list_history(a_id) if e.action == "status_changed"]
    assert len(status_changes) == 1


async def test_failed_history_write_rolls_back_transition(queue, staff, desk_service, monkeypatch):
    ticket = await queue.create_ticket(desk_service.id)
    ticket_id = ticket.id

    def broken_record(*args, **kwargs):
        raise RuntimeError("history table is gone")

    monkeypatch.setattr(queue.history, "record", broken_record)
    with pytest.raises(RuntimeError):
        await queue.claim(ticket_id, staff)
    monkeypatch.undo()

    current = await queue.get_ticket(ticket_id)
    assert current.status == QueueStatus.WAITING.value
    assert current.claimed_by is None
    assert current.called_at is None
    actions = [e.action for e in await queue.list_history(ticket_id)]
    assert actions == [HistoryAction.CREATED.value]


async def test_slow_store_raises_store_unavailable(queue, desk_service, monkeypatch):
    service_id = desk_service.id
    real_next_order = queue._next_order

    async def slow_next_order(order_service_id):
        await asyncio.sleep(0.5)
        return await real_next_order(order_service_id)

    queue.timeout = 0.05
    monkeypatch.setattr(queue, "_next_order", slow_next_order)
    with pytest.raises(StoreUnavailable):
        await queue.create_ticket(service_id)
    monkeypatch.undo()

    counts = await queue.queue_counts(service_id)
    assert counts[QueueStatus.WAITING.value] == 0


async def test_claim_next_on_empty_queue(queue, staff, desk_service):
    assert await queue.claim_next(desk_service.id, staff) is None
    with pytest.raises(NotFound):
        await queue.claim_next(4242, staff)


async def test_fanout_after_commit(queue, staff, desk_service, backend):
    ticket = await queue.create_ticket(desk_service.id)
    await queue.claim(ticket.id, staff)

    keys = [(channel.key, payload["action"]) for channel, payload in backend.published]
    assert keys == [
        (f"service:{desk_service.id}", "create"),
        (f"ticket:{ticket.id}", "create"),
        (f"service:{desk_service.id}", "claim"),
        (f"ticket:{ticket.id}", "claim"),
    ]
    payload = backend.published[-1][1]
    assert payload["ticketId"] == ticket.id
    assert payload["serviceId"] == desk_service.id
    assert payload["newStatus"] == "CALLED"


async def test_failed_transition_publishes_nothing(queue, staff, desk_service, backend):
    ticket = await queue.create_ticket(desk_service.id)
    published = len(backend.published)
    with pytest.raises(InvalidStateTransition):
        await queue.start(ticket.id, staff)
    assert len(backend.published) == published


async def test_broken_fanout_does_not_fail_mutation(session, staff, desk_service):
    class ExplodingBackend:
        async def publish(self, channel, payload):
            raise ConnectionError("redis is down")

    from servicedesk.core.websockets import Fanout

    queue = QueueService(session, Fanout(ExplodingBackend()))
    ticket = await queue.create_ticket(desk_service.id)
    ticket = await queue.claim(ticket.id, staff)
    assert ticket.status == QueueStatus.CALLED.value


async def test_queue_counts(queue, staff, desk_service):
    a = await queue.create_ticket(desk_service.id)
    await queue.create_ticket(desk_service.id)
    await queue.claim(a.id, staff)

    counts = await queue.queue_counts(desk_service.id)
    assert counts["WAITING"] == 1
    assert counts["CALLED"] == 1
    assert counts["DONE"] == 0
