from __future__ import annotations

import json
from datetime import date

from flask import g, jsonify, request, send_file
from flask_login import current_user, login_required

from app.beneficio import beneficio_bp
from app.beneficio.cessation import (
    UploadedFile,
    add_files_to_result,
    delete_document,
    download_document,
    get_cessation_result,
    get_cessation_result_by_concession,
    list_cessation_results,
    preview_cessation_result,
    register_cessation_result,
)
from app.beneficio.eligibility import EligibilityInput
from app.beneficio.services import (
    activate_concession,
    approve_request,
    block_concession,
    cancel_request,
    cease_concession,
    close_concession,
    concession_by_id,
    create_renewal_request,
    create_request,
    deny_request,
    eligibility_validator,
    list_requests,
    reactivate_concession,
    request_by_id,
    suspend_concession,
    transition_request,
    unblock_concession,
    update_request,
)
from app.core.errors import ValidationError
from app.core.models import Concessao, DocumentoComprobatorio, ResultadoCessacao, Solicitacao
from app.core.permissions import require_membership, require_role
from app.core.utils import parse_bool, parse_int, parse_optional_int

PROVA_SOCIAL_FIELDS = ("provaSocial", "provaSocial[]", "prova_social")
DOCUMENTACAO_TECNICA_FIELDS = ("documentacaoTecnica", "documentacaoTecnica[]", "documentacao_tecnica")


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value else None


def _solicitacao_dict(solicitacao: Solicitacao) -> dict[str, object]:
    return {
        "id": solicitacao.id,
        "protocolo": solicitacao.protocolo,
        "beneficiario_id": solicitacao.beneficiario_id,
        "solicitante_id": solicitacao.solicitante_id,
        "tipo_beneficio_id": solicitacao.tipo_beneficio_id,
        "unidade_id": solicitacao.unidade_id,
        "tecnico_id": solicitacao.tecnico_id,
        "data_abertura": _iso(solicitacao.data_abertura),
        "status": solicitacao.status.value,
        "sub_status": solicitacao.sub_status,
        "tipo": solicitacao.tipo.value,
        "quantidade_parcelas": solicitacao.quantidade_parcelas,
        "prioridade": solicitacao.prioridade,
        "determinacao_judicial_flag": solicitacao.determinacao_judicial_flag,
        "determinacao_judicial_id": solicitacao.determinacao_judicial_id,
        "aprovador_id": solicitacao.aprovador_id,
        "data_aprovacao": _iso(solicitacao.data_aprovacao),
        "liberador_id": solicitacao.liberador_id,
        "data_liberacao": _iso(solicitacao.data_liberacao),
        "parecer": solicitacao.parecer,
        "motivo_indeferimento": solicitacao.motivo_indeferimento,
        "solicitacao_original_id": solicitacao.solicitacao_original_id,
        "solicitacao_renovada_id": solicitacao.solicitacao_renovada_id,
        "dados_beneficio": solicitacao.dados_beneficio,
        "observacoes": solicitacao.observacoes,
        "prazo_analise": _iso(solicitacao.prazo_analise),
        "prazo_documentos": _iso(solicitacao.prazo_documentos),
        "prazo_processamento": _iso(solicitacao.prazo_processamento),
        "version": solicitacao.version,
    }


def _concessao_dict(concessao: Concessao) -> dict[str, object]:
    return {
        "id": concessao.id,
        "solicitacao_id": concessao.solicitacao_id,
        "beneficiario_id": concessao.beneficiario_id,
        "tipo_beneficio_id": concessao.tipo_beneficio_id,
        "status": concessao.status.value,
        "data_inicio": _iso(concessao.data_inicio),
        "data_fim_prevista": _iso(concessao.data_fim_prevista),
        "data_encerramento": _iso(concessao.data_encerramento),
        "ordem_prioridade": concessao.ordem_prioridade,
        "determinacao_judicial_flag": concessao.determinacao_judicial_flag,
        "motivo_status": concessao.motivo_status,
        "data_revisao_suspensao": _iso(concessao.data_revisao_suspensao),
    }


def _documento_dict(documento: DocumentoComprobatorio) -> dict[str, object]:
    return {
        "id": documento.id,
        "categoria": documento.categoria.value,
        "nome_arquivo": documento.nome_arquivo,
        "caminho_arquivo": documento.caminho_arquivo,
        "tipo_mime": documento.tipo_mime,
        "tamanho": documento.tamanho,
        "hash_arquivo": documento.hash_arquivo,
        "descricao": documento.descricao,
        "observacoes": documento.observacoes,
        "validado": documento.validado,
        "data_upload": _iso(documento.data_upload),
    }


def _resultado_dict(resultado: ResultadoCessacao) -> dict[str, object]:
    tecnico = resultado.tecnico
    return {
        "id": resultado.id,
        "concessao": _concessao_dict(resultado.concessao),
        "motivo_encerramento": resultado.motivo_encerramento.value,
        "justificativa": resultado.justificativa,
        "status_vulnerabilidade": resultado.status_vulnerabilidade.value,
        "avaliacao_vulnerabilidade": resultado.avaliacao_vulnerabilidade,
        "observacoes_tecnicas": resultado.observacoes_tecnicas,
        "acompanhamento_posterior": resultado.acompanhamento_posterior,
        "detalhes_acompanhamento": resultado.detalhes_acompanhamento,
        "recomendacoes": resultado.recomendacoes,
        "tecnico": {"id": tecnico.id, "nome": tecnico.full_name} if tecnico else None,
        "data_registro": _iso(resultado.data_registro),
        "documentos": [_documento_dict(documento) for documento in resultado.documentos],
    }


def _payload() -> dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    payload = request.form.to_dict()
    documentos_raw = payload.get("documentos")
    if documentos_raw:
        try:
            payload["documentos"] = json.loads(documentos_raw)
        except ValueError as exc:
            raise ValidationError("Campo documentos deve ser JSON", {"campo": "documentos"}) from exc
    return payload


def _uploads(field_names: tuple[str, ...]) -> list[UploadedFile]:
    uploads: list[UploadedFile] = []
    for name in field_names:
        for file_obj in request.files.getlist(name):
            if file_obj and file_obj.filename:
                uploads.append(UploadedFile.from_storage(file_obj))
    return uploads


def _page(result: dict[str, object], serializer) -> dict[str, object]:
    return {**result, "items": [serializer(item) for item in result["items"]]}


# -- solicitacoes -------------------------------------------------------------


@beneficio_bp.get("/solicitacoes")
@login_required
@require_membership
def solicitacoes_list():
    return jsonify(_page(list_requests(request.args.to_dict()), _solicitacao_dict))


@beneficio_bp.post("/solicitacoes")
@login_required
@require_membership
def solicitacoes_create():
    solicitacao = create_request(_payload(), current_user.id, g.unidade.id)
    return jsonify(_solicitacao_dict(solicitacao)), 201


@beneficio_bp.post("/elegibilidade")
@login_required
@require_membership
def elegibilidade_check():
    payload = _payload()
    quantidade_parcelas = parse_optional_int(payload.get("quantidade_parcelas"), "quantidade_parcelas")
    verdict = eligibility_validator().evaluate(
        EligibilityInput(
            beneficiario_id=parse_int(payload.get("beneficiario_id"), "beneficiario_id"),
            tipo_beneficio_id=parse_int(payload.get("tipo_beneficio_id"), "tipo_beneficio_id"),
            quantidade_parcelas=1 if quantidade_parcelas is None else quantidade_parcelas,
            determinacao_judicial_flag=parse_bool(payload.get("determinacao_judicial_flag")),
            determinacao_judicial_id=parse_optional_int(
                payload.get("determinacao_judicial_id"), "determinacao_judicial_id"
            ),
        )
    )
    return jsonify(
        {
            "elegivel": verdict.admitted,
            "violacoes": [violation.to_error().to_dict() for violation in verdict.violations],
        }
    )


@beneficio_bp.get("/solicitacoes/<int:solicitacao_id>")
@login_required
@require_membership
def solicitacoes_detail(solicitacao_id: int):
    return jsonify(_solicitacao_dict(request_by_id(solicitacao_id)))


@beneficio_bp.patch("/solicitacoes/<int:solicitacao_id>")
@login_required
@require_membership
def solicitacoes_update(solicitacao_id: int):
    solicitacao = update_request(solicitacao_id, _payload(), current_user.id)
    return jsonify(_solicitacao_dict(solicitacao))


@beneficio_bp.post("/solicitacoes/<int:solicitacao_id>/status")
@login_required
@require_membership
def solicitacoes_transition(solicitacao_id: int):
    payload = _payload()
    solicitacao = transition_request(solicitacao_id, payload.get("status"), current_user.id, payload)
    return jsonify(_solicitacao_dict(solicitacao))


@beneficio_bp.post("/solicitacoes/<int:solicitacao_id>/aprovar")
@login_required
@require_membership
@require_role("admin", "coordenador")
def solicitacoes_approve(solicitacao_id: int):
    solicitacao, concessao = approve_request(solicitacao_id, current_user.id, _payload())
    return jsonify({"solicitacao": _solicitacao_dict(solicitacao), "concessao": _concessao_dict(concessao)}), 201


@beneficio_bp.post("/solicitacoes/<int:solicitacao_id>/indeferir")
@login_required
@require_membership
@require_role("admin", "coordenador")
def solicitacoes_deny(solicitacao_id: int):
    return jsonify(_solicitacao_dict(deny_request(solicitacao_id, current_user.id, _payload())))


@beneficio_bp.post("/solicitacoes/<int:solicitacao_id>/cancelar")
@login_required
@require_membership
def solicitacoes_cancel(solicitacao_id: int):
    return jsonify(_solicitacao_dict(cancel_request(solicitacao_id, current_user.id, _payload())))


@beneficio_bp.post("/solicitacoes/<int:solicitacao_id>/renovar")
@login_required
@require_membership
def solicitacoes_renew(solicitacao_id: int):
    renovacao = create_renewal_request(solicitacao_id, _payload(), current_user.id, g.unidade.id)
    return jsonify(_solicitacao_dict(renovacao)), 201


# -- concessoes ---------------------------------------------------------------

CONCESSION_ACTIONS = {
    "liberar": activate_concession,
    "suspender": suspend_concession,
    "bloquear": block_concession,
    "reativar": reactivate_concession,
    "desbloquear": unblock_concession,
    "cessar": cease_concession,
    "encerrar": close_concession,
}


@beneficio_bp.get("/concessoes/<int:concessao_id>")
@login_required
@require_membership
def concessoes_detail(concessao_id: int):
    return jsonify(_concessao_dict(concession_by_id(concessao_id)))


@beneficio_bp.post("/concessoes/<int:concessao_id>/<acao>")
@login_required
@require_membership
@require_role("admin", "coordenador")
def concessoes_action(concessao_id: int, acao: str):
    action = CONCESSION_ACTIONS.get(acao)
    if action is None:
        raise ValidationError("Acao de concessao invalida", {"acao": acao, "permitidas": sorted(CONCESSION_ACTIONS)})
    concessao = action(concessao_id, current_user.id, _payload())
    return jsonify(_concessao_dict(concessao))


@beneficio_bp.get("/concessoes/<int:concessao_id>/resultado-cessacao")
@login_required
@require_membership
def concessoes_cessation_result(concessao_id: int):
    return jsonify(_resultado_dict(get_cessation_result_by_concession(concessao_id)))


# -- resultados de cessacao ---------------------------------------------------


@beneficio_bp.get("/resultados-cessacao")
@login_required
@require_membership
def resultados_list():
    return jsonify(_page(list_cessation_results(request.args.to_dict()), _resultado_dict))


@beneficio_bp.post("/resultados-cessacao")
@login_required
@require_membership
def resultados_create():
    outcome = register_cessation_result(
        _payload(),
        current_user.id,
        prova_social=_uploads(PROVA_SOCIAL_FIELDS),
        documentacao_tecnica=_uploads(DOCUMENTACAO_TECNICA_FIELDS),
    )
    return jsonify({**_resultado_dict(outcome.resultado), "warnings": outcome.warnings}), 201


@beneficio_bp.post("/resultados-cessacao/validar")
@login_required
@require_membership
def resultados_validate():
    verdict = preview_cessation_result(
        _payload(),
        prova_social=_uploads(PROVA_SOCIAL_FIELDS),
        documentacao_tecnica=_uploads(DOCUMENTACAO_TECNICA_FIELDS),
    )
    return jsonify(
        {
            "valido": verdict.admitted,
            "violacoes": [violation.to_error().to_dict() for violation in verdict.violations],
            "warnings": list(verdict.warnings),
        }
    )


@beneficio_bp.get("/resultados-cessacao/<int:resultado_id>")
@login_required
@require_membership
def resultados_detail(resultado_id: int):
    return jsonify(_resultado_dict(get_cessation_result(resultado_id)))


@beneficio_bp.post("/resultados-cessacao/<int:resultado_id>/documentos")
@login_required
@require_membership
def resultados_add_files(resultado_id: int):
    payload = _payload()
    documentos = add_files_to_result(
        resultado_id,
        current_user.id,
        prova_social=_uploads(PROVA_SOCIAL_FIELDS),
        documentacao_tecnica=_uploads(DOCUMENTACAO_TECNICA_FIELDS),
        metadata=payload.get("documentos"),
    )
    return jsonify([_documento_dict(documento) for documento in documentos]), 201


@beneficio_bp.get("/resultados-cessacao/<int:resultado_id>/documentos/<int:documento_id>/download")
@login_required
@require_membership
def resultados_download_document(resultado_id: int, documento_id: int):
    stream, filename, mime_type = download_document(resultado_id, documento_id)
    return send_file(stream, mimetype=mime_type, as_attachment=True, download_name=filename)


@beneficio_bp.delete("/resultados-cessacao/<int:resultado_id>/documentos/<int:documento_id>")
@login_required
@require_membership
def resultados_delete_document(resultado_id: int, documento_id: int):
    delete_document(resultado_id, documento_id, current_user.id)
    return "", 204
