from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


class DomainError(ValueError):
    code = "domain_error"
    http_status = 400

    def __init__(self, message: str, details: dict[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, object]:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(DomainError):
    code = "validation_error"
    http_status = 422


class NotFoundError(DomainError):
    code = "not_found"
    http_status = 404


class ConflictError(DomainError):
    code = "conflict"
    http_status = 409


class WaitingPeriodError(DomainError):
    code = "waiting_period"
    http_status = 422

    def __init__(self, eligible_date: date, message: str | None = None):
        super().__init__(
            message or f"Beneficiario em periodo de carencia ate {eligible_date.isoformat()}",
            {"eligible_date": eligible_date.isoformat()},
        )
        self.eligible_date = eligible_date


class ConcurrencyError(DomainError):
    code = "concurrency_error"
    http_status = 409


@dataclass(frozen=True)
class Violation:
    error: type[DomainError]
    message: str
    details: dict[str, object] = field(default_factory=dict)

    def to_error(self) -> DomainError:
        if self.error is WaitingPeriodError:
            return WaitingPeriodError(self.details["eligible_date"], self.message)
        return self.error(self.message, dict(self.details))
