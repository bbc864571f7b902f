import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.conserto.models import Conserto, CONSERTO_TERMINAL_STATUSES
from app.core.devolucao.models import Devolucao, DEVOLUCAO_TERMINAL_STATUSES
from app.core.rnc.models import Rnc, RNC_ACEITA
from app.errors import Conflict, InvalidState, InvalidStateTransition, NotFound


@dataclass(frozen=True)
class LinearWorkflow:
    """
    Ordered stages where each step moves to the next one. `branches` adds extra
    successors for a stage (the inspection fork of Conserto).
    """
    name: str
    stages: tuple[str, ...]
    branches: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def successors(self, status: str) -> tuple[str, ...]:
        if status in self.branches:
            return self.branches[status]
        try:
            idx = self.stages.index(status)
        except ValueError:
            return ()
        return self.stages[idx + 1: idx + 2]

    def is_terminal(self, status: str) -> bool:
        return not self.successors(status)

    def require(self, record: Any, expected: str) -> None:
        if record.status != expected:
            raise InvalidStateTransition(expected, record.status)

    def advance(self, record: Any, expected: str, to_status: str, **stamps: Any) -> None:
        """Checks everything first, then writes status and stamps together."""
        self.require(record, expected)
        if to_status not in self.successors(expected):
            raise InvalidState(f'{self.name}: transição "{expected}" -> "{to_status}" não permitida')
        for name in stamps:
            if getattr(record, name) is not None:
                raise InvalidState(f"{self.name}: {name} já registrado")
        for name, value in stamps.items():
            setattr(record, name, value)
        record.status = to_status


async def find_devolucao_for_rnc(db: AsyncSession, rnc_id: uuid.UUID) -> Devolucao | None:
    result = await db.execute(select(Devolucao).where(Devolucao.rnc_id == rnc_id))
    return result.scalar_one_or_none()


async def find_conserto_for_rnc(db: AsyncSession, rnc_id: uuid.UUID) -> Conserto | None:
    result = await db.execute(select(Conserto).where(Conserto.rnc_id == rnc_id))
    return result.scalar_one_or_none()


async def find_remediation(db: AsyncSession, rnc_id: uuid.UUID) -> Devolucao | Conserto | None:
    return await find_devolucao_for_rnc(db, rnc_id) or await find_conserto_for_rnc(db, rnc_id)


def remediation_open(record: Devolucao | Conserto | None) -> bool:
    if record is None:
        return False
    if isinstance(record, Devolucao):
        return record.status not in DEVOLUCAO_TERMINAL_STATUSES
    return record.status not in CONSERTO_TERMINAL_STATUSES


async def lock_rnc_for_remediation(db: AsyncSession, rnc_id: uuid.UUID) -> Rnc:
    """
    Locks the RNC row so two concurrent creations for the same RNC serialise;
    the unique rnc_id on both remediation tables backs this up.
    """
    result = await db.execute(select(Rnc).where(Rnc.id == rnc_id).with_for_update())
    rnc = result.scalar_one_or_none()
    if not rnc:
        raise NotFound("RNC não encontrada")
    if rnc.status != RNC_ACEITA:
        raise InvalidState(f'Apenas RNCs com status "{RNC_ACEITA}" podem gerar devolução ou conserto')
    if await find_devolucao_for_rnc(db, rnc_id):
        raise Conflict("Já existe uma devolução para esta RNC")
    if await find_conserto_for_rnc(db, rnc_id):
        raise Conflict("Já existe um conserto para esta RNC")
    return rnc
