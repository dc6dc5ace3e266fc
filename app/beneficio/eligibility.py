from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func

from app.core.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    Violation,
    WaitingPeriodError,
)
from app.core.extensions import db
from app.core.models import (
    CLOSED_CONCESSION_STATUSES,
    NON_TERMINAL_CONCESSION_STATUSES,
    OPEN_REQUEST_STATUSES,
    Concessao,
    DeterminacaoJudicial,
    Periodicidade,
    Solicitacao,
    TipoBeneficio,
)
from app.core.utils import add_months


@dataclass(frozen=True)
class EligibilitySettings:
    waiting_period_months: int = 12
    closed_concessions_threshold: int = 2
    default_max_installments: int = 12

    @classmethod
    def from_config(cls, config) -> EligibilitySettings:
        return cls(
            waiting_period_months=int(config.get("ELIGIBILITY_WAITING_PERIOD_MONTHS", 12)),
            closed_concessions_threshold=int(config.get("ELIGIBILITY_CLOSED_CONCESSIONS_THRESHOLD", 2)),
            default_max_installments=int(config.get("ELIGIBILITY_DEFAULT_MAX_INSTALLMENTS", 12)),
        )


@dataclass(frozen=True)
class EligibilityInput:
    beneficiario_id: int
    tipo_beneficio_id: int
    quantidade_parcelas: int
    determinacao_judicial_flag: bool = False
    determinacao_judicial_id: int | None = None
    data_referencia: date | None = None
    # the request being edited, ignored by the duplicate check
    ignorar_solicitacao_id: int | None = None


@dataclass(frozen=True)
class EligibilityVerdict:
    violations: tuple[Violation, ...] = ()

    @property
    def admitted(self) -> bool:
        return not self.violations

    def raise_first(self) -> None:
        if self.violations:
            raise self.violations[0].to_error()


class EligibilityValidator:
    """Admission rules for a new benefit request.

    Read-only: every check is a SELECT against the current session, nothing is
    flushed or locked, so the validator can be called speculatively.
    """

    def __init__(self, settings: EligibilitySettings | None = None):
        self.settings = settings or EligibilitySettings()

    def evaluate(self, data: EligibilityInput) -> EligibilityVerdict:
        tipo = db.session.get(TipoBeneficio, data.tipo_beneficio_id)
        if tipo is None:
            return EligibilityVerdict(
                (Violation(NotFoundError, "Tipo de beneficio nao encontrado", {"tipo_beneficio_id": data.tipo_beneficio_id}),)
            )
        if not tipo.ativo:
            return EligibilityVerdict(
                (Violation(ValidationError, f"Tipo de beneficio {tipo.codigo} esta inativo", {"tipo_beneficio_id": tipo.id}),)
            )

        if data.determinacao_judicial_flag:
            return EligibilityVerdict(tuple(self._judicial_violations(data)))

        violations: list[Violation] = []
        violations.extend(self._duplicate_violations(data))
        violations.extend(self._waiting_period_violations(data, tipo))
        violations.extend(self._installment_violations(data, tipo))
        return EligibilityVerdict(tuple(violations))

    def ensure(self, data: EligibilityInput) -> None:
        self.evaluate(data).raise_first()

    def waiting_period_end(self, beneficiario_id: int, tipo_beneficio_id: int) -> date | None:
        count, last_closure = (
            db.session.query(func.count(Concessao.id), func.max(Concessao.data_encerramento))
            .filter(Concessao.beneficiario_id == beneficiario_id)
            .filter(Concessao.tipo_beneficio_id == tipo_beneficio_id)
            .filter(Concessao.status.in_(CLOSED_CONCESSION_STATUSES))
            .filter(Concessao.data_encerramento.isnot(None))
            .one()
        )
        if count < self.settings.closed_concessions_threshold or last_closure is None:
            return None
        return add_months(last_closure, self.settings.waiting_period_months)

    def _duplicate_violations(self, data: EligibilityInput) -> list[Violation]:
        violations: list[Violation] = []
        open_request = (
            Solicitacao.query.filter_by(
                beneficiario_id=data.beneficiario_id,
                tipo_beneficio_id=data.tipo_beneficio_id,
            )
            .filter(Solicitacao.status.in_(OPEN_REQUEST_STATUSES))
            .filter(Solicitacao.id != (data.ignorar_solicitacao_id or 0))
            .order_by(Solicitacao.id.asc())
            .first()
        )
        if open_request:
            violations.append(
                Violation(
                    ConflictError,
                    f"Ja existe solicitacao em andamento ({open_request.protocolo}) para este beneficiario e beneficio",
                    {"solicitacao_id": open_request.id, "protocolo": open_request.protocolo},
                )
            )
        active_concession = (
            Concessao.query.filter_by(
                beneficiario_id=data.beneficiario_id,
                tipo_beneficio_id=data.tipo_beneficio_id,
            )
            .filter(Concessao.status.in_(NON_TERMINAL_CONCESSION_STATUSES))
            .order_by(Concessao.id.asc())
            .first()
        )
        if active_concession:
            violations.append(
                Violation(
                    ConflictError,
                    "Ja existe concessao vigente para este beneficiario e beneficio",
                    {"concessao_id": active_concession.id, "status": active_concession.status.value},
                )
            )
        return violations

    def _waiting_period_violations(self, data: EligibilityInput, tipo: TipoBeneficio) -> list[Violation]:
        if tipo.periodicidade != Periodicidade.RECORRENTE:
            return []
        eligible_date = self.waiting_period_end(data.beneficiario_id, data.tipo_beneficio_id)
        reference = data.data_referencia or date.today()
        if eligible_date is None or reference >= eligible_date:
            return []
        return [
            Violation(
                WaitingPeriodError,
                f"Beneficiario em periodo de carencia para {tipo.nome} ate {eligible_date.isoformat()}",
                {"eligible_date": eligible_date},
            )
        ]

    def _installment_violations(self, data: EligibilityInput, tipo: TipoBeneficio) -> list[Violation]:
        parcelas = data.quantidade_parcelas
        if tipo.periodicidade == Periodicidade.UNICA:
            if parcelas != 1:
                return [
                    Violation(
                        ValidationError,
                        "Beneficio de pagamento unico exige exatamente 1 parcela",
                        {"quantidade_parcelas": parcelas, "permitido": [1, 1]},
                    )
                ]
            return []
        max_parcelas = tipo.max_parcelas or self.settings.default_max_installments
        if parcelas < 1 or parcelas > max_parcelas:
            return [
                Violation(
                    ValidationError,
                    f"Quantidade de parcelas deve estar entre 1 e {max_parcelas}",
                    {"quantidade_parcelas": parcelas, "permitido": [1, max_parcelas]},
                )
            ]
        return []

    def _judicial_violations(self, data: EligibilityInput) -> list[Violation]:
        violations: list[Violation] = []
        if data.determinacao_judicial_id is None:
            violations.append(
                Violation(ValidationError, "Determinacao judicial obrigatoria quando a flag judicial esta ativa")
            )
        else:
            determinacao = db.session.get(DeterminacaoJudicial, data.determinacao_judicial_id)
            if determinacao is None:
                violations.append(
                    Violation(
                        NotFoundError,
                        "Determinacao judicial nao encontrada",
                        {"determinacao_judicial_id": data.determinacao_judicial_id},
                    )
                )
            elif not determinacao.ativo:
                violations.append(
                    Violation(
                        ValidationError,
                        f"Determinacao judicial {determinacao.numero_processo} nao esta ativa",
                        {"determinacao_judicial_id": determinacao.id},
                    )
                )
            elif not determinacao.tem_documento:
                violations.append(
                    Violation(
                        ValidationError,
                        f"Determinacao judicial {determinacao.numero_processo} sem documento anexado",
                        {"determinacao_judicial_id": determinacao.id},
                    )
                )
        if data.quantidade_parcelas < 1:
            violations.append(
                Violation(
                    ValidationError,
                    "Quantidade de parcelas deve ser no minimo 1",
                    {"quantidade_parcelas": data.quantidade_parcelas},
                )
            )
        return violations
