# tests/test_support_tickets.py
import json

import pytest

from servicedesk.core.constants import HistoryAction, TicketPriority, TicketStatus
from servicedesk.core.errors import InvalidStateTransition, NotFound, ValidationError
from servicedesk.services.customer_service import CustomerService
from servicedesk.services.ticket_service import SupportTicketService

pytestmark = pytest.mark.asyncio


@pytest.fixture
def tickets(session):
    return SupportTicketService(session)


async def test_create_with_inline_customer_reuses_phone_match(tickets, staff):
    first = await tickets.create_ticket(
        "Wifi down", staff, customer={"name": "Dewi", "phone": "0812-000-111"}
    )
    second = await tickets.create_ticket(
        "Wifi still down", staff, customer={"name": "Dewi S.", "phone": "0812000111"}
    )

    assert first.customer_id is not None
    assert first.customer_id == second.customer_id
    described = await tickets.describe(second)
    assert described["customer_name"] == "Dewi"
    assert described["customer_phone"] == "0812000111"


async def test_title_required(tickets, staff):
    with pytest.raises(ValidationError):
        await tickets.create_ticket("   ", staff)


async def test_unknown_customer_id(tickets, staff):
    with pytest.raises(NotFound):
        await tickets.create_ticket("Billing", staff, customer_id=999)


async def test_status_flow_and_resolved_at(tickets, staff):
    ticket = await tickets.create_ticket("Refund", staff)
    assert ticket.status == TicketStatus.OPEN.value
    assert ticket.resolved_at is None

    with pytest.raises(InvalidStateTransition):
        await tickets.change_status(ticket.id, TicketStatus.RESOLVED, staff)

    ticket = await tickets.change_status(ticket.id, TicketStatus.IN_PROGRESS, staff)
    assert ticket.resolved_at is None
    ticket = await tickets.change_status(ticket.id, TicketStatus.RESOLVED, staff)
    resolved_at = ticket.resolved_at
    assert resolved_at is not None
    ticket = await tickets.change_status(ticket.id, TicketStatus.CLOSED, staff)
    assert ticket.resolved_at == resolved_at

    with pytest.raises(InvalidStateTransition, match="follow-up"):
        await tickets.change_status(ticket.id, TicketStatus.OPEN, staff)


async def test_follow_up_of_closed_ticket(tickets, staff):
    parent = await tickets.create_ticket(
        "Printer jam",
        staff,
        priority=TicketPriority.HIGH,
        customer={"name": "Budi", "phone": "0811"},
    )
    for status in (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED):
        await tickets.change_status(parent.id, status, staff)

    follow = await tickets.create_follow_up(parent.id, staff, details="jammed again")
    assert follow.parent_id == parent.id
    assert follow.title == "Follow up: Printer jam"
    assert follow.status == TicketStatus.OPEN.value
    assert follow.priority == TicketPriority.HIGH.value
    assert follow.customer_id == parent.customer_id
    assert follow.description == (
        f"Ref Ticket: {parent.id}\nCustomer: Budi\nPhone: 0811\n\nDetails: jammed again"
    )

    second = await tickets.create_follow_up(follow.id, staff)
    assert second.title == "Follow up (2): Printer jam"

    parent_history = await tickets.list_history(parent.id)
    assert parent_history[0].action == HistoryAction.FOLLOW_UP.value
    assert parent_history[0].new_value == str(follow.id)


async def test_update_records_changed_fields_only(tickets, staff):
    ticket = await tickets.create_ticket("Login issue", staff, category="accounts")
    await tickets.update_ticket(
        ticket.id, {"title": "Login issue", "priority": "urgent", "category": "auth"}, staff
    )

    entry = (await tickets.list_history(ticket.id))[0]
    assert entry.action == HistoryAction.UPDATED.value
    assert json.loads(entry.old_value) == {"priority": "medium", "category": "accounts"}
    assert json.loads(entry.new_value) == {"priority": "urgent", "category": "auth"}


async def test_update_without_changes_writes_no_history(tickets, staff):
    ticket = await tickets.create_ticket("Noop", staff)
    await tickets.update_ticket(ticket.id, {"title": "Noop"}, staff)
    assert len(await tickets.list_history(ticket.id)) == 1


async def test_list_filters_search_and_pagination(tickets, staff):
    await tickets.create_ticket("Router broken", staff, priority=TicketPriority.URGENT)
    await tickets.create_ticket("Invoice wrong", staff, description="router fee charged twice")
    await tickets.create_ticket("Password reset", staff, customer={"name": "Router Lover"})
    await tickets.create_ticket("Other", staff)

    found = await tickets.list_tickets(q="router")
    assert found["total"] == 3

    urgent = await tickets.list_tickets(priority=TicketPriority.URGENT)
    assert [item["title"] for item in urgent["items"]] == ["Router broken"]

    page = await tickets.list_tickets(sort_by="title", sort_dir="asc", limit=2, offset=1)
    assert page["total"] == 4
    assert [item["title"] for item in page["items"]] == ["Other", "Password reset"]

    # Unknown sort field falls back to created_at
    fallback = await tickets.list_tickets(sort_by="id; DROP TABLE users")
    assert fallback["total"] == 4


async def test_delete_keeps_history(tickets, staff, supervisor):
    ticket = await tickets.create_ticket("Temp", staff)
    await tickets.delete_ticket(ticket.id, supervisor)

    with pytest.raises(NotFound):
        await tickets.get_ticket(ticket.id)
    history = await tickets.list_history(ticket.id)
    assert history[0].action == HistoryAction.DELETED.value
    assert history[0].changed_by == "sam"


async def test_case_opened_from_desk_visit(tickets, queue, session, staff, desk_service):
    customer = await CustomerService(session).find_or_create(name="Rina", phone="0813 555")
    visit = await queue.create_ticket(desk_service.id, customer.id)

    case = await tickets.create_for_queue_ticket(visit.id, staff, details="Wants a refund")
    assert case.title == "Desk visit ADM001"
    assert case.queue_ticket_id == visit.id
    assert case.customer_id == customer.id
    assert case.status == TicketStatus.OPEN.value

    named = await tickets.create_for_queue_ticket(
        visit.id, staff, summary="Refund request", priority=TicketPriority.HIGH
    )
    assert named.title == "Refund request"
    assert named.priority == TicketPriority.HIGH.value

    cases = await tickets.list_for_queue_ticket(visit.id)
    assert [c["id"] for c in cases] == [named.id, case.id]
    assert cases[0]["customer_name"] == "Rina"

    entries = await tickets.list_history(case.id)
    assert [e.action for e in entries] == [HistoryAction.CREATED.value]


async def test_case_for_unknown_desk_visit(tickets, staff):
    with pytest.raises(NotFound):
        await tickets.create_for_queue_ticket(404, staff)
    with pytest.raises(NotFound):
        await tickets.list_for_queue_ticket(404)
