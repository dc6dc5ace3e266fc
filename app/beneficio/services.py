from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from app.beneficio.eligibility import EligibilityInput, EligibilitySettings, EligibilityValidator
from app.core import events
from app.core.errors import ConcurrencyError, ConflictError, NotFoundError, ValidationError
from app.core.extensions import db
from app.core.models import (
    NON_TERMINAL_CONCESSION_STATUSES,
    OPEN_REQUEST_STATUSES,
    Cidadao,
    Concessao,
    HistoricoConcessao,
    ResultadoCessacao,
    Solicitacao,
    StatusConcessao,
    StatusSolicitacao,
    TipoBeneficio,
    TipoSolicitacao,
    User,
)
from app.core.utils import (
    add_months,
    parse_bool,
    parse_int,
    parse_optional_int,
    parse_optional_iso_date,
    parse_pagination,
)

logger = logging.getLogger(__name__)


REQUEST_TRANSITIONS: dict[StatusSolicitacao, set[StatusSolicitacao]] = {
    StatusSolicitacao.RASCUNHO: {StatusSolicitacao.ABERTA, StatusSolicitacao.CANCELADA},
    StatusSolicitacao.ABERTA: {
        StatusSolicitacao.PENDENTE,
        StatusSolicitacao.EM_ANALISE,
        StatusSolicitacao.CANCELADA,
    },
    StatusSolicitacao.PENDENTE: {StatusSolicitacao.EM_ANALISE, StatusSolicitacao.CANCELADA},
    StatusSolicitacao.EM_ANALISE: {
        StatusSolicitacao.PENDENTE,
        StatusSolicitacao.APROVADA,
        StatusSolicitacao.INDEFERIDA,
        StatusSolicitacao.CANCELADA,
    },
    StatusSolicitacao.APROVADA: set(),
    StatusSolicitacao.INDEFERIDA: set(),
    StatusSolicitacao.CANCELADA: set(),
}

CONCESSION_TRANSITIONS: dict[StatusConcessao, set[StatusConcessao]] = {
    StatusConcessao.PENDENTE: {
        StatusConcessao.ATIVO,
        StatusConcessao.SUSPENSO,
        StatusConcessao.BLOQUEADO,
        StatusConcessao.ENCERRADO,
    },
    StatusConcessao.ATIVO: {
        StatusConcessao.SUSPENSO,
        StatusConcessao.BLOQUEADO,
        StatusConcessao.CESSADO,
        StatusConcessao.ENCERRADO,
    },
    StatusConcessao.SUSPENSO: {StatusConcessao.ATIVO, StatusConcessao.BLOQUEADO, StatusConcessao.ENCERRADO},
    StatusConcessao.BLOQUEADO: {StatusConcessao.ATIVO, StatusConcessao.ENCERRADO},
    StatusConcessao.CESSADO: {StatusConcessao.ATIVO, StatusConcessao.ENCERRADO},
    StatusConcessao.ENCERRADO: set(),
}

EDITABLE_REQUEST_STATUSES = (
    StatusSolicitacao.RASCUNHO,
    StatusSolicitacao.ABERTA,
    StatusSolicitacao.PENDENTE,
)
JUDICIAL_PRIORITY = 1


def eligibility_validator() -> EligibilityValidator:
    return EligibilityValidator(EligibilitySettings.from_config(current_app.config))


def _today() -> date:
    return date.today()


def _commit() -> None:
    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrencyError("Registro alterado por outra operacao; recarregue e tente novamente") from exc
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Operacao conflita com um registro existente") from exc


def _parse_request_status(value) -> StatusSolicitacao:
    if isinstance(value, StatusSolicitacao):
        return value
    raw = (value or "").strip().upper()
    try:
        return StatusSolicitacao[raw]
    except KeyError as exc:
        raise ValidationError("Status de solicitacao invalido", {"status": value}) from exc


def _next_protocol(year: int) -> str:
    value_prefix = f"SOL-{year}-"
    count = (
        db.session.query(func.count(Solicitacao.id))
        .filter(Solicitacao.protocolo.like(f"{value_prefix}%"))
        .scalar()
    )
    return f"{value_prefix}{count + 1:04d}"


def request_by_id(request_id: int) -> Solicitacao:
    solicitacao = db.session.get(Solicitacao, request_id)
    if not solicitacao:
        raise NotFoundError("Solicitacao nao encontrada", {"solicitacao_id": request_id})
    return solicitacao


def concession_by_id(concession_id: int) -> Concessao:
    concessao = db.session.get(Concessao, concession_id)
    if not concessao:
        raise NotFoundError("Concessao nao encontrada", {"concessao_id": concession_id})
    return concessao


def _cidadao(cidadao_id: int, role_label: str) -> Cidadao:
    cidadao = db.session.get(Cidadao, cidadao_id)
    if not cidadao:
        raise NotFoundError(f"{role_label} nao encontrado", {"cidadao_id": cidadao_id})
    return cidadao


def _technician(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise NotFoundError("Tecnico nao encontrado", {"tecnico_id": user_id})
    return user


def _request_event_payload(solicitacao: Solicitacao, user_id: int | None) -> dict[str, object]:
    return {
        "solicitacao_id": solicitacao.id,
        "protocolo": solicitacao.protocolo,
        "status": solicitacao.status.value,
        "user_id": user_id,
    }


def _apply_sla(solicitacao: Solicitacao, target: StatusSolicitacao) -> None:
    config = current_app.config
    today = _today()
    if target == StatusSolicitacao.ABERTA:
        solicitacao.prazo_analise = today + timedelta(days=int(config.get("REQUEST_SLA_ANALYSIS_DAYS", 15)))
    elif target == StatusSolicitacao.PENDENTE:
        solicitacao.prazo_documentos = today + timedelta(days=int(config.get("REQUEST_SLA_DOCUMENTS_DAYS", 10)))
    elif target == StatusSolicitacao.EM_ANALISE:
        solicitacao.prazo_documentos = None
        if solicitacao.prazo_analise is None:
            solicitacao.prazo_analise = today + timedelta(days=int(config.get("REQUEST_SLA_ANALYSIS_DAYS", 15)))
    elif target == StatusSolicitacao.APROVADA:
        solicitacao.prazo_analise = None
        solicitacao.prazo_processamento = today + timedelta(
            days=int(config.get("REQUEST_SLA_PROCESSING_DAYS", 5))
        )
    else:
        solicitacao.prazo_analise = None
        solicitacao.prazo_documentos = None
        solicitacao.prazo_processamento = None


def _check_request_transition(solicitacao: Solicitacao, target: StatusSolicitacao) -> None:
    current = solicitacao.status
    if target not in REQUEST_TRANSITIONS.get(current, set()):
        raise ConflictError(
            f"Transicao invalida: {current.value} -> {target.value}",
            {"solicitacao_id": solicitacao.id, "status": current.value, "destino": target.value},
        )


def _check_version(solicitacao: Solicitacao, expected_version) -> None:
    expected = parse_optional_int(expected_version, "version")
    if expected is not None and expected != solicitacao.version:
        raise ConcurrencyError(
            "Solicitacao alterada por outra operacao; recarregue e tente novamente",
            {"solicitacao_id": solicitacao.id, "version": solicitacao.version, "esperada": expected},
        )


def create_request(payload: dict, user_id: int, unidade_id: int) -> Solicitacao:
    beneficiario_id = parse_int(payload.get("beneficiario_id"), "beneficiario_id")
    tipo_beneficio_id = parse_int(payload.get("tipo_beneficio_id"), "tipo_beneficio_id")
    quantidade_parcelas = parse_optional_int(payload.get("quantidade_parcelas"), "quantidade_parcelas")
    if quantidade_parcelas is None:
        quantidade_parcelas = 1
    judicial = parse_bool(payload.get("determinacao_judicial_flag"))
    determinacao_id = parse_optional_int(payload.get("determinacao_judicial_id"), "determinacao_judicial_id")
    solicitante_id = parse_optional_int(payload.get("solicitante_id"), "solicitante_id")

    _cidadao(beneficiario_id, "Beneficiario")
    if solicitante_id:
        _cidadao(solicitante_id, "Solicitante")
    _technician(user_id)

    eligibility_validator().ensure(
        EligibilityInput(
            beneficiario_id=beneficiario_id,
            tipo_beneficio_id=tipo_beneficio_id,
            quantidade_parcelas=quantidade_parcelas,
            determinacao_judicial_flag=judicial,
            determinacao_judicial_id=determinacao_id,
            data_referencia=_today(),
        )
    )

    prioridade = parse_optional_int(payload.get("prioridade"), "prioridade") or 3
    solicitacao = Solicitacao(
        protocolo=_next_protocol(_today().year),
        beneficiario_id=beneficiario_id,
        solicitante_id=solicitante_id,
        tipo_beneficio_id=tipo_beneficio_id,
        unidade_id=unidade_id,
        tecnico_id=user_id,
        status=StatusSolicitacao.RASCUNHO,
        determinacao_judicial_flag=judicial,
        determinacao_judicial_id=determinacao_id if judicial else None,
        quantidade_parcelas=quantidade_parcelas,
        prioridade=JUDICIAL_PRIORITY if judicial else prioridade,
        tipo=TipoSolicitacao.ORIGINAL,
        dados_beneficio=dict(payload.get("dados_beneficio") or {}),
        observacoes=(payload.get("observacoes") or "").strip(),
    )
    db.session.add(solicitacao)
    _commit()
    logger.info("Solicitacao %s criada por usuario %s", solicitacao.protocolo, user_id)
    events.publish(events.request_created, "solicitacao", **_request_event_payload(solicitacao, user_id))
    return solicitacao


def update_request(request_id: int, payload: dict, user_id: int) -> Solicitacao:
    solicitacao = request_by_id(request_id)
    _check_version(solicitacao, payload.get("version"))
    if solicitacao.status not in EDITABLE_REQUEST_STATUSES:
        raise ConflictError(
            f"Solicitacao com status {solicitacao.status.value} nao pode ser alterada",
            {"solicitacao_id": solicitacao.id, "status": solicitacao.status.value},
        )

    quantidade_parcelas = parse_optional_int(payload.get("quantidade_parcelas"), "quantidade_parcelas")
    if quantidade_parcelas is None:
        quantidade_parcelas = solicitacao.quantidade_parcelas
    judicial = solicitacao.determinacao_judicial_flag
    if "determinacao_judicial_flag" in payload:
        judicial = parse_bool(payload.get("determinacao_judicial_flag"))
    determinacao_id = solicitacao.determinacao_judicial_id
    if "determinacao_judicial_id" in payload:
        determinacao_id = parse_optional_int(payload.get("determinacao_judicial_id"), "determinacao_judicial_id")

    eligibility_validator().ensure(
        EligibilityInput(
            beneficiario_id=solicitacao.beneficiario_id,
            tipo_beneficio_id=solicitacao.tipo_beneficio_id,
            quantidade_parcelas=quantidade_parcelas,
            determinacao_judicial_flag=judicial,
            determinacao_judicial_id=determinacao_id,
            data_referencia=solicitacao.data_abertura.date(),
            ignorar_solicitacao_id=solicitacao.id,
        )
    )

    solicitacao.quantidade_parcelas = quantidade_parcelas
    solicitacao.determinacao_judicial_flag = judicial
    solicitacao.determinacao_judicial_id = determinacao_id if judicial else None
    if judicial:
        solicitacao.prioridade = JUDICIAL_PRIORITY
    elif "prioridade" in payload:
        solicitacao.prioridade = parse_optional_int(payload.get("prioridade"), "prioridade") or 3
    if "solicitante_id" in payload:
        solicitante_id = parse_optional_int(payload.get("solicitante_id"), "solicitante_id")
        if solicitante_id:
            _cidadao(solicitante_id, "Solicitante")
        solicitacao.solicitante_id = solicitante_id
    if "dados_beneficio" in payload:
        solicitacao.dados_beneficio = dict(payload.get("dados_beneficio") or {})
    if "observacoes" in payload:
        solicitacao.observacoes = (payload.get("observacoes") or "").strip()
    db.session.add(solicitacao)
    _commit()
    events.publish(events.request_updated, "solicitacao", **_request_event_payload(solicitacao, user_id))
    return solicitacao


def transition_request(request_id: int, new_status, user_id: int, payload: dict | None = None) -> Solicitacao:
    payload = payload or {}
    target = _parse_request_status(new_status)
    if target == StatusSolicitacao.APROVADA:
        solicitacao, _concessao = approve_request(request_id, user_id, payload)
        return solicitacao
    if target == StatusSolicitacao.INDEFERIDA:
        return deny_request(request_id, user_id, payload)
    if target == StatusSolicitacao.CANCELADA:
        return cancel_request(request_id, user_id, payload)

    solicitacao = request_by_id(request_id)
    _check_version(solicitacao, payload.get("version"))
    _check_request_transition(solicitacao, target)
    previous = solicitacao.status
    solicitacao.status = target
    solicitacao.sub_status = (payload.get("sub_status") or "").strip().upper() or None
    _apply_sla(solicitacao, target)
    db.session.add(solicitacao)
    _commit()
    logger.info("Solicitacao %s: %s -> %s", solicitacao.protocolo, previous.value, target.value)
    events.publish(events.request_updated, "solicitacao", **_request_event_payload(solicitacao, user_id))
    return solicitacao


def approve_request(request_id: int, user_id: int, payload: dict | None = None) -> tuple[Solicitacao, Concessao]:
    payload = payload or {}
    solicitacao = request_by_id(request_id)
    _check_version(solicitacao, payload.get("version"))
    _check_request_transition(solicitacao, StatusSolicitacao.APROVADA)
    _technician(user_id)

    if not solicitacao.determinacao_judicial_flag:
        vigente = (
            Concessao.query.filter_by(
                beneficiario_id=solicitacao.beneficiario_id,
                tipo_beneficio_id=solicitacao.tipo_beneficio_id,
            )
            .filter(Concessao.status.in_(NON_TERMINAL_CONCESSION_STATUSES))
            .first()
        )
        if vigente:
            raise ConflictError(
                "Ja existe concessao vigente para este beneficiario e beneficio",
                {"concessao_id": vigente.id, "status": vigente.status.value},
            )

    tipo = db.session.get(TipoBeneficio, solicitacao.tipo_beneficio_id)
    data_inicio = parse_optional_iso_date(payload.get("data_inicio"), "data_inicio") or _today()
    data_fim_prevista = None
    if tipo is not None and tipo.recorrente:
        data_fim_prevista = add_months(data_inicio, solicitacao.quantidade_parcelas)

    now = datetime.now(timezone.utc)
    solicitacao.status = StatusSolicitacao.APROVADA
    solicitacao.sub_status = None
    solicitacao.aprovador_id = user_id
    solicitacao.data_aprovacao = now
    solicitacao.parecer = (payload.get("parecer") or "").strip()
    _apply_sla(solicitacao, StatusSolicitacao.APROVADA)

    concessao = Concessao(
        solicitacao_id=solicitacao.id,
        beneficiario_id=solicitacao.beneficiario_id,
        tipo_beneficio_id=solicitacao.tipo_beneficio_id,
        status=StatusConcessao.PENDENTE,
        data_inicio=data_inicio,
        data_fim_prevista=data_fim_prevista,
        ordem_prioridade=solicitacao.prioridade,
        determinacao_judicial_flag=solicitacao.determinacao_judicial_flag,
    )
    db.session.add_all([solicitacao, concessao])
    db.session.flush()
    db.session.add(
        HistoricoConcessao(
            concessao_id=concessao.id,
            status_anterior=None,
            status_novo=StatusConcessao.PENDENTE.value,
            motivo=f"Concessao criada pela aprovacao da solicitacao {solicitacao.protocolo}",
            user_id=user_id,
        )
    )
    _commit()
    logger.info("Solicitacao %s aprovada; concessao %s criada", solicitacao.protocolo, concessao.id)
    events.publish(events.request_updated, "solicitacao", **_request_event_payload(solicitacao, user_id))
    return solicitacao, concessao


def deny_request(request_id: int, user_id: int, payload: dict | None = None) -> Solicitacao:
    payload = payload or {}
    motivo = (payload.get("motivo") or payload.get("motivo_indeferimento") or "").strip()
    if not motivo:
        raise ValidationError("Motivo do indeferimento obrigatorio", {"campo": "motivo"})
    solicitacao = request_by_id(request_id)
    _check_version(solicitacao, payload.get("version"))
    _check_request_transition(solicitacao, StatusSolicitacao.INDEFERIDA)

    solicitacao.status = StatusSolicitacao.INDEFERIDA
    solicitacao.sub_status = None
    solicitacao.motivo_indeferimento = motivo
    solicitacao.parecer = (payload.get("parecer") or "").strip()
    _apply_sla(solicitacao, StatusSolicitacao.INDEFERIDA)
    db.session.add(solicitacao)
    _commit()
    events.publish(events.request_updated, "solicitacao", **_request_event_payload(solicitacao, user_id))
    return solicitacao


def cancel_request(request_id: int, user_id: int, payload: dict | None = None) -> Solicitacao:
    payload = payload or {}
    solicitacao = request_by_id(request_id)
    _check_version(solicitacao, payload.get("version"))
    _check_request_transition(solicitacao, StatusSolicitacao.CANCELADA)

    solicitacao.status = StatusSolicitacao.CANCELADA
    solicitacao.sub_status = None
    motivo = (payload.get("motivo") or "").strip()
    if motivo:
        solicitacao.observacoes = "\n".join(filter(None, [solicitacao.observacoes, f"Cancelamento: {motivo}"]))
    _apply_sla(solicitacao, StatusSolicitacao.CANCELADA)
    db.session.add(solicitacao)
    _commit()
    events.publish(events.request_updated, "solicitacao", **_request_event_payload(solicitacao, user_id))
    return solicitacao


def create_renewal_request(original_id: int, payload: dict, user_id: int, unidade_id: int) -> Solicitacao:
    original = request_by_id(original_id)
    if original.status != StatusSolicitacao.APROVADA or original.concessao is None:
        raise ConflictError(
            "Somente solicitacoes aprovadas com concessao podem ser renovadas",
            {"solicitacao_id": original.id, "status": original.status.value},
        )
    if original.solicitacao_renovada_id:
        raise ConflictError(
            "Solicitacao ja foi renovada",
            {"solicitacao_id": original.id, "solicitacao_renovada_id": original.solicitacao_renovada_id},
        )
    tipo = db.session.get(TipoBeneficio, original.tipo_beneficio_id)
    if tipo is None or not tipo.recorrente:
        raise ValidationError("Apenas beneficios recorrentes admitem renovacao", {"solicitacao_id": original.id})
    if original.concessao.nao_terminal:
        raise ConflictError(
            "A concessao original ainda esta vigente",
            {"concessao_id": original.concessao.id, "status": original.concessao.status.value},
        )
    _technician(user_id)

    quantidade_parcelas = parse_optional_int(payload.get("quantidade_parcelas"), "quantidade_parcelas")
    if quantidade_parcelas is None:
        quantidade_parcelas = original.quantidade_parcelas
    eligibility_validator().ensure(
        EligibilityInput(
            beneficiario_id=original.beneficiario_id,
            tipo_beneficio_id=original.tipo_beneficio_id,
            quantidade_parcelas=quantidade_parcelas,
            data_referencia=_today(),
        )
    )

    renovacao = Solicitacao(
        protocolo=_next_protocol(_today().year),
        beneficiario_id=original.beneficiario_id,
        solicitante_id=original.solicitante_id,
        tipo_beneficio_id=original.tipo_beneficio_id,
        unidade_id=unidade_id,
        tecnico_id=user_id,
        status=StatusSolicitacao.EM_ANALISE,
        quantidade_parcelas=quantidade_parcelas,
        prioridade=original.prioridade,
        tipo=TipoSolicitacao.RENOVACAO,
        solicitacao_original_id=original.id,
        dados_beneficio=dict(original.dados_beneficio or {}),
        observacoes=(payload.get("observacoes") or "").strip(),
    )
    _apply_sla(renovacao, StatusSolicitacao.EM_ANALISE)
    db.session.add(renovacao)
    db.session.flush()
    original.solicitacao_renovada_id = renovacao.id
    db.session.add(original)
    _commit()
    logger.info("Renovacao %s criada a partir de %s", renovacao.protocolo, original.protocolo)
    events.publish(events.request_created, "solicitacao", **_request_event_payload(renovacao, user_id))
    return renovacao


def list_requests(filters: dict) -> dict[str, object]:
    page, limit = parse_pagination(filters)
    query = Solicitacao.query
    status_raw = (filters.get("status") or "").strip()
    if status_raw:
        query = query.filter(Solicitacao.status == _parse_request_status(status_raw))
    elif parse_bool(filters.get("abertas")):
        query = query.filter(Solicitacao.status.in_(OPEN_REQUEST_STATUSES))
    for field_name in ("beneficiario_id", "tipo_beneficio_id", "unidade_id", "tecnico_id"):
        value = parse_optional_int(filters.get(field_name), field_name)
        if value is not None:
            query = query.filter(getattr(Solicitacao, field_name) == value)
    protocolo = (filters.get("protocolo") or "").strip()
    if protocolo:
        query = query.filter(Solicitacao.protocolo.ilike(f"%{protocolo}%"))

    total = query.count()
    items = (
        query.order_by(Solicitacao.prioridade.asc(), Solicitacao.data_abertura.desc(), Solicitacao.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total, "page": page, "limit": limit}


def _change_concession_status(
    concessao: Concessao,
    target: StatusConcessao,
    motivo: str,
    user_id: int | None,
    closure_date: date | None = None,
) -> StatusConcessao:
    current = concessao.status
    if target not in CONCESSION_TRANSITIONS.get(current, set()):
        raise ConflictError(
            f"Transicao invalida: {current.value} -> {target.value}",
            {"concessao_id": concessao.id, "status": current.value, "destino": target.value},
        )
    if current == StatusConcessao.CESSADO and target == StatusConcessao.ATIVO:
        resultado = ResultadoCessacao.query.filter_by(concessao_id=concessao.id).first()
        if resultado:
            raise ConflictError(
                "Concessao com resultado de cessacao registrado nao pode ser reativada",
                {"concessao_id": concessao.id, "resultado_id": resultado.id},
            )

    closure = closure_date or _today()
    if target in (StatusConcessao.CESSADO, StatusConcessao.ENCERRADO) and closure < concessao.data_inicio:
        raise ValidationError(
            "Data de encerramento anterior ao inicio da concessao",
            {"data_encerramento": closure.isoformat(), "data_inicio": concessao.data_inicio.isoformat()},
        )

    concessao.status = target
    concessao.motivo_status = motivo
    if target in (StatusConcessao.CESSADO, StatusConcessao.ENCERRADO):
        concessao.data_encerramento = closure
    elif target == StatusConcessao.ATIVO:
        concessao.data_encerramento = None
    if target != StatusConcessao.SUSPENSO:
        concessao.data_revisao_suspensao = None

    db.session.add(concessao)
    db.session.add(
        HistoricoConcessao(
            concessao_id=concessao.id,
            status_anterior=current.value,
            status_novo=target.value,
            motivo=motivo,
            user_id=user_id,
        )
    )
    return current


def _concession_event_payload(concessao: Concessao, previous: StatusConcessao, user_id: int | None) -> dict:
    return {
        "concessao_id": concessao.id,
        "status_anterior": previous.value,
        "status": concessao.status.value,
        "motivo": concessao.motivo_status,
        "user_id": user_id,
    }


def _required_reason(payload: dict, label: str) -> str:
    motivo = (payload.get("motivo") or "").strip()
    if not motivo:
        raise ValidationError(f"Motivo obrigatorio para {label}", {"campo": "motivo"})
    return motivo


def activate_concession(concession_id: int, user_id: int, payload: dict | None = None) -> Concessao:
    payload = payload or {}
    concessao = concession_by_id(concession_id)
    if concessao.status != StatusConcessao.PENDENTE:
        raise ConflictError(
            "Apenas concessoes pendentes podem ser liberadas",
            {"concessao_id": concessao.id, "status": concessao.status.value},
        )
    _change_concession_status(
        concessao, StatusConcessao.ATIVO, (payload.get("motivo") or "Liberacao do beneficio").strip(), user_id
    )
    solicitacao = concessao.solicitacao
    solicitacao.liberador_id = user_id
    solicitacao.data_liberacao = datetime.now(timezone.utc)
    solicitacao.prazo_processamento = None
    db.session.add(solicitacao)
    _commit()
    return concessao


def suspend_concession(concession_id: int, user_id: int, payload: dict) -> Concessao:
    motivo = _required_reason(payload, "suspensao")
    concessao = concession_by_id(concession_id)
    previous = _change_concession_status(concessao, StatusConcessao.SUSPENSO, motivo, user_id)
    concessao.data_revisao_suspensao = parse_optional_iso_date(
        payload.get("data_revisao"), "data_revisao"
    )
    _commit()
    logger.info("Concessao %s suspensa por usuario %s", concessao.id, user_id)
    events.publish(events.concession_suspended, "concessao", **_concession_event_payload(concessao, previous, user_id))
    return concessao


def block_concession(concession_id: int, user_id: int, payload: dict) -> Concessao:
    motivo = _required_reason(payload, "bloqueio")
    concessao = concession_by_id(concession_id)
    previous = _change_concession_status(concessao, StatusConcessao.BLOQUEADO, motivo, user_id)
    _commit()
    logger.info("Concessao %s bloqueada por usuario %s", concessao.id, user_id)
    events.publish(events.concession_blocked, "concessao", **_concession_event_payload(concessao, previous, user_id))
    return concessao


def reactivate_concession(concession_id: int, user_id: int, payload: dict | None = None) -> Concessao:
    payload = payload or {}
    concessao = concession_by_id(concession_id)
    if concessao.status not in (StatusConcessao.SUSPENSO, StatusConcessao.CESSADO):
        raise ConflictError(
            "Apenas concessoes suspensas ou cessadas podem ser reativadas",
            {"concessao_id": concessao.id, "status": concessao.status.value},
        )
    motivo = (payload.get("motivo") or "Reativacao").strip()
    previous = _change_concession_status(concessao, StatusConcessao.ATIVO, motivo, user_id)
    _commit()
    events.publish(
        events.concession_reactivated, "concessao", **_concession_event_payload(concessao, previous, user_id)
    )
    return concessao


def unblock_concession(concession_id: int, user_id: int, payload: dict | None = None) -> Concessao:
    payload = payload or {}
    concessao = concession_by_id(concession_id)
    if concessao.status != StatusConcessao.BLOQUEADO:
        raise ConflictError(
            "Apenas concessoes bloqueadas podem ser desbloqueadas",
            {"concessao_id": concessao.id, "status": concessao.status.value},
        )
    motivo = (payload.get("motivo") or "Desbloqueio").strip()
    previous = _change_concession_status(concessao, StatusConcessao.ATIVO, motivo, user_id)
    _commit()
    events.publish(
        events.concession_reactivated, "concessao", **_concession_event_payload(concessao, previous, user_id)
    )
    return concessao


def cease_concession(concession_id: int, user_id: int, payload: dict) -> Concessao:
    motivo = _required_reason(payload, "cessacao")
    concessao = concession_by_id(concession_id)
    closure = parse_optional_iso_date(payload.get("data_encerramento"), "data_encerramento")
    _change_concession_status(concessao, StatusConcessao.CESSADO, motivo, user_id, closure)
    _commit()
    logger.info("Concessao %s cessada em %s", concessao.id, concessao.data_encerramento)
    return concessao


def close_concession(concession_id: int, user_id: int, payload: dict) -> Concessao:
    motivo = _required_reason(payload, "encerramento")
    concessao = concession_by_id(concession_id)
    closure = parse_optional_iso_date(payload.get("data_encerramento"), "data_encerramento")
    _change_concession_status(concessao, StatusConcessao.ENCERRADO, motivo, user_id, closure)
    _commit()
    return concessao
