# servicedesk/services/catalog_service.py
"""
Desk services and counters: the catalog a kiosk visitor picks from and the
desks that call tickets for it.
"""
from typing import List, Optional

from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.errors import NotFound, ValidationError
from ..db.engine import unit_of_work
from ..models.service import Counter, Service

CODE_PREFIX_LENGTH = 3


def normalize_code_prefix(code: Optional[str]) -> str:
    code = (code or "").strip().upper()
    if len(code) != CODE_PREFIX_LENGTH or not code.isalnum():
        raise ValidationError(f"code_prefix must be exactly {CODE_PREFIX_LENGTH} letters or digits")
    return code


class CatalogService:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self.session = session
        self.timeout = timeout

    # --- Services ---

    async def list_services(self, active_only: bool = False) -> List[Service]:
        statement = select(Service)
        if active_only:
            statement = statement.where(Service.is_active == True)  # noqa: E712
        result = await self.session.exec(statement.order_by(col(Service.name)))
        return list(result.all())

    async def get_service(self, service_id: int) -> Service:
        service = await self.session.get(Service, service_id)
        if not service:
            raise NotFound(f"Service {service_id} not found")
        return service

    async def create_service(self, data: dict) -> Service:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Service name is required")
        code = normalize_code_prefix(data.get("code_prefix"))
        await self._ensure_prefix_free(code)
        async with unit_of_work(self.session, self.timeout):
            service = Service(
                name=name,
                code_prefix=code,
                is_active=data.get("is_active", True),
                sla_warn_minutes=data.get("sla_warn_minutes") or 10,
            )
            self.session.add(service)
        return service

    async def update_service(self, service_id: int, data: dict) -> Service:
        service = await self.get_service(service_id)
        changes = {}
        if data.get("code_prefix") is not None:
            code = normalize_code_prefix(data["code_prefix"])
            if code != service.code_prefix:
                await self._ensure_prefix_free(code)
            changes["code_prefix"] = code
        if data.get("name") is not None:
            name = data["name"].strip()
            if not name:
                raise ValidationError("Service name is required")
            changes["name"] = name
        for key in ("is_active", "sla_warn_minutes"):
            if data.get(key) is not None:
                changes[key] = data[key]

        async with unit_of_work(self.session, self.timeout):
            for key, value in changes.items():
                setattr(service, key, value)
            self.session.add(service)
        return service

    async def delete_service(self, service_id: int) -> None:
        service = await self.get_service(service_id)
        async with unit_of_work(self.session, self.timeout):
            await self.session.delete(service)

    async def _ensure_prefix_free(self, code: str) -> None:
        result = await self.session.exec(select(Service).where(Service.code_prefix == code))
        if result.first():
            raise ValidationError(f"code_prefix {code} is already used by another service")

    # --- Counters ---

    async def list_counters(self) -> List[Counter]:
        result = await self.session.exec(select(Counter).order_by(col(Counter.name)))
        return list(result.all())

    async def get_counter(self, counter_id: int) -> Counter:
        counter = await self.session.get(Counter, counter_id)
        if not counter:
            raise NotFound(f"Counter {counter_id} not found")
        return counter

    async def create_counter(self, name: str, service_ids: List[int], is_active: bool = True) -> Counter:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Counter name is required")
        await self._ensure_services_exist(service_ids)
        async with unit_of_work(self.session, self.timeout):
            counter = Counter(name=name, allowed_service_ids=_join_ids(service_ids), is_active=is_active)
            self.session.add(counter)
        return counter

    async def update_counter(self, counter_id: int, data: dict) -> Counter:
        counter = await self.get_counter(counter_id)
        if data.get("service_ids") is not None:
            await self._ensure_services_exist(data["service_ids"])
        async with unit_of_work(self.session, self.timeout):
            if data.get("name") is not None:
                counter.name = data["name"].strip() or counter.name
            if data.get("service_ids") is not None:
                counter.allowed_service_ids = _join_ids(data["service_ids"])
            if data.get("is_active") is not None:
                counter.is_active = data["is_active"]
            self.session.add(counter)
        return counter

    async def delete_counter(self, counter_id: int) -> None:
        counter = await self.get_counter(counter_id)
        async with unit_of_work(self.session, self.timeout):
            await self.session.delete(counter)

    async def _ensure_services_exist(self, service_ids: List[int]) -> None:
        for service_id in service_ids:
            await self.get_service(service_id)


def _join_ids(ids: List[int]) -> str:
    return ",".join(str(i) for i in sorted(set(ids)))
