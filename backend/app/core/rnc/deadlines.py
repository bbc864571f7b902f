"""
Deadline arithmetic for the supplier response clock.

Days are counted on calendar dates in the business timezone, so an RNC sent at
23:30 local time has one day elapsed at 00:05 the next morning.
"""
from datetime import date, datetime, timedelta

from app.clock import local_date
from app.settings import get_settings


def prazo_dias() -> int:
    return get_settings().RNC_PRAZO_DIAS


def dias_decorridos(prazo_inicio: datetime, today: date) -> int:
    return (today - local_date(prazo_inicio)).days


def dias_restantes(prazo_inicio: datetime, today: date, prazo: int | None = None) -> int:
    prazo = prazo_dias() if prazo is None else prazo
    return max(0, prazo - dias_decorridos(prazo_inicio, today))


def prazo_fim(prazo_inicio: datetime, prazo: int | None = None) -> datetime:
    prazo = prazo_dias() if prazo is None else prazo
    return prazo_inicio + timedelta(days=prazo)
