from __future__ import annotations

import calendar
from datetime import date

from app.core.errors import ValidationError


def add_months(base: date, months: int) -> date:
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    # 31/01 + 1 mes -> 28/02 (ou 29/02)
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def parse_pagination(filters, max_limit: int = 100, default_limit: int = 20) -> tuple[int, int]:
    page_raw = str(filters.get("page") or "1").strip()
    limit_raw = str(filters.get("limit") or default_limit).strip()
    try:
        page = int(page_raw)
        limit = int(limit_raw)
    except ValueError as exc:
        raise ValidationError("Parametros de paginacao invalidos", {"page": page_raw, "limit": limit_raw}) from exc
    if page < 1:
        raise ValidationError("Pagina deve ser maior ou igual a 1", {"page": page})
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"Limite deve estar entre 1 e {max_limit}", {"limit": limit})
    return page, limit


def parse_optional_int(value, field_name: str) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f"{field_name} invalido", {field_name: raw}) from exc


def parse_int(value, field_name: str) -> int:
    parsed = parse_optional_int(value, field_name)
    if parsed is None:
        raise ValidationError(f"{field_name} obrigatorio", {"campo": field_name})
    return parsed


def parse_optional_iso_date(value, field_name: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"Data invalida para {field_name}", {field_name: raw}) from exc


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "on", "sim", "yes"}
