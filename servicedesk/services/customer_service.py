# servicedesk/services/customer_service.py
import re
from datetime import datetime
from typing import List, Optional

from sqlmodel import col, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.errors import NotFound, ValidationError
from ..db.engine import unit_of_work
from ..models.customer import Customer

PHONE_MAX_DIGITS = 12


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Keeps digits only, at most PHONE_MAX_DIGITS. Empty input gives None."""
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)[:PHONE_MAX_DIGITS]
    return digits or None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class CustomerService:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self.session = session
        self.timeout = timeout

    async def list_customers(self, q: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Customer]:
        statement = select(Customer)
        if q:
            pattern = f"%{q.strip()}%"
            statement = statement.where(
                or_(
                    col(Customer.name).ilike(pattern),
                    col(Customer.email).ilike(pattern),
                    col(Customer.phone).ilike(pattern),
                )
            )
        statement = statement.order_by(col(Customer.created_at).desc()).offset(offset).limit(limit)
        result = await self.session.exec(statement)
        return list(result.all())

    async def get_customer(self, customer_id: int) -> Customer:
        customer = await self.session.get(Customer, customer_id)
        if not customer:
            raise NotFound(f"Customer {customer_id} not found")
        return customer

    async def create_customer(self, data: dict) -> Customer:
        customer = self._build(data)
        async with unit_of_work(self.session, self.timeout):
            self.session.add(customer)
        return customer

    async def update_customer(self, customer_id: int, data: dict) -> Customer:
        customer = await self.get_customer(customer_id)
        async with unit_of_work(self.session, self.timeout):
            if "name" in data:
                customer.name = _clean(data["name"])
            if "email" in data:
                customer.email = _clean(data["email"])
            if "phone" in data:
                customer.phone = normalize_phone(data["phone"])
            customer.updated_at = datetime.utcnow()
            self.session.add(customer)
        return customer

    async def find_by_phone(self, phone: str) -> Optional[Customer]:
        result = await self.session.exec(select(Customer).where(Customer.phone == phone))
        return result.first()

    async def find_or_create(
        self, name: Optional[str] = None, email: Optional[str] = None, phone: Optional[str] = None
    ) -> Optional[Customer]:
        """
        Kiosk intake. Matches an existing customer by phone, otherwise creates
        one. Returns None when no identifying field was given (anonymous
        visitor). Runs inside the caller's transaction; does not commit.
        """
        phone = normalize_phone(phone)
        name, email = _clean(name), _clean(email)
        if phone:
            existing = await self.find_by_phone(phone)
            if existing:
                if name and not existing.name:
                    existing.name = name
                    existing.updated_at = datetime.utcnow()
                    self.session.add(existing)
                return existing
        if not (name or email or phone):
            return None
        customer = Customer(name=name, email=email, phone=phone)
        self.session.add(customer)
        await self.session.flush()
        return customer

    def _build(self, data: dict) -> Customer:
        name, email = _clean(data.get("name")), _clean(data.get("email"))
        phone = normalize_phone(data.get("phone"))
        if not (name or email or phone):
            raise ValidationError("A customer needs a name, email or phone")
        return Customer(name=name, email=email, phone=phone)
