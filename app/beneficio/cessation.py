from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import BinaryIO

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from app.beneficio.compliance import (
    BUNDLE_DOCUMENTACAO_TECNICA,
    BUNDLE_PROVA_SOCIAL,
    STORAGE_PREFIX,
    CessationComplianceValidator,
    CessationInput,
    ComplianceSettings,
    ComplianceVerdict,
    DocumentInput,
    is_managed_path,
    normalized_storage_path,
    parse_categoria,
    parse_motivo,
    parse_status_vulnerabilidade,
    text_value,
    upload_limit_violations,
)
from app.core import events
from app.core.errors import ConflictError, DomainError, NotFoundError, ValidationError
from app.core.extensions import db
from app.core.models import (
    CategoriaDocumento,
    Concessao,
    DocumentoComprobatorio,
    ResultadoCessacao,
    User,
)
from app.core.storage import blob_store
from app.core.utils import parse_bool, parse_int, parse_optional_int, parse_optional_iso_date, parse_pagination

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_CATEGORY = {
    BUNDLE_PROVA_SOCIAL: CategoriaDocumento.PROVA_SOCIAL,
    BUNDLE_DOCUMENTACAO_TECNICA: CategoriaDocumento.DOCUMENTACAO_TECNICA,
}


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    mimetype: str | None = None
    categoria: str | None = None

    @classmethod
    def from_storage(cls, file_obj: FileStorage, categoria: str | None = None) -> UploadedFile:
        return cls(
            filename=file_obj.filename or "",
            content=file_obj.read(),
            mimetype=file_obj.mimetype or None,
            categoria=categoria,
        )


@dataclass
class StepResult:
    ok: bool
    value: object = None
    error: DomainError | None = None

    @classmethod
    def success(cls, value: object = None) -> StepResult:
        return cls(True, value)

    @classmethod
    def failure(cls, error: DomainError) -> StepResult:
        return cls(False, error=error)


@dataclass
class RegistrationOutcome:
    resultado: ResultadoCessacao
    warnings: list[str] = field(default_factory=list)


@dataclass
class _PendingDocument:
    entrada: DocumentInput
    upload: UploadedFile | None = None


@dataclass
class _UnitOfWork:
    """State shared between the steps of one registration/amendment."""

    written_paths: list[str] = field(default_factory=list)
    documents: list[DocumentoComprobatorio] = field(default_factory=list)


class StepFailed(Exception):
    def __init__(self, error: DomainError):
        super().__init__(error.message)
        self.error = error


def compliance_validator() -> CessationComplianceValidator:
    return CessationComplianceValidator(ComplianceSettings.from_config(current_app.config))


def _check(step: StepResult) -> object:
    if not step.ok:
        raise StepFailed(step.error)
    return step.value


def _text(payload: dict, key: str) -> str:
    return text_value(payload.get(key))


def _metadata_list(raw) -> list[dict]:
    raw = raw or []
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise ValidationError("Lista de documentos invalida", {"campo": "documentos"})
    return raw


def _metadata_entries(payload: dict) -> list[dict]:
    return _metadata_list(payload.get("documentos"))


def _prepare_documents(
    metadata: Sequence[dict],
    prova_social: Sequence[UploadedFile],
    documentacao_tecnica: Sequence[UploadedFile],
) -> list[_PendingDocument]:
    # Metadata entries naming an uploaded file enrich that upload; the rest
    # describe files already stored and are persisted as given.
    by_filename: dict[str, dict] = {}
    standalone: list[dict] = []
    for item in metadata:
        nome = text_value(item.get("nome_arquivo"))
        if nome and not text_value(item.get("caminho_arquivo")) and nome not in by_filename:
            by_filename[nome] = item
        else:
            standalone.append(item)

    pending: list[_PendingDocument] = []
    for bundle, uploads in ((BUNDLE_PROVA_SOCIAL, prova_social), (BUNDLE_DOCUMENTACAO_TECNICA, documentacao_tecnica)):
        for upload in uploads:
            extra = by_filename.pop(upload.filename, {})
            categoria = (
                text_value(extra.get("categoria"))
                or text_value(upload.categoria)
                or DEFAULT_BUNDLE_CATEGORY[bundle].value
            )
            pending.append(
                _PendingDocument(
                    DocumentInput(
                        categoria=categoria,
                        nome_arquivo=upload.filename,
                        tipo_mime=upload.mimetype,
                        tamanho=len(upload.content),
                        descricao=text_value(extra.get("descricao")),
                        observacoes=text_value(extra.get("observacoes")),
                        bundle=bundle,
                    ),
                    upload,
                )
            )
    # unmatched metadata without a storage path still goes through the per-document checks
    standalone.extend(by_filename.values())
    for item in standalone:
        pending.append(
            _PendingDocument(
                DocumentInput(
                    categoria=text_value(item.get("categoria")),
                    nome_arquivo=text_value(item.get("nome_arquivo")),
                    caminho_arquivo=text_value(item.get("caminho_arquivo")),
                    tipo_mime=text_value(item.get("tipo_mime")) or None,
                    tamanho=parse_optional_int(item.get("tamanho"), "tamanho") or 0,
                    descricao=text_value(item.get("descricao")),
                    observacoes=text_value(item.get("observacoes")),
                    hash_arquivo=text_value(item.get("hash_arquivo")) or None,
                )
            )
        )
    return pending


def _cessation_input(payload: dict, concessao_id: int, pending: Sequence[_PendingDocument]) -> CessationInput:
    return CessationInput(
        concessao_id=concessao_id,
        motivo_encerramento=_text(payload, "motivo_encerramento"),
        status_vulnerabilidade=_text(payload, "status_vulnerabilidade"),
        observacoes_tecnicas=_text(payload, "observacoes_tecnicas"),
        justificativa=_text(payload, "justificativa"),
        avaliacao_vulnerabilidade=_text(payload, "avaliacao_vulnerabilidade"),
        acompanhamento_posterior=parse_bool(payload.get("acompanhamento_posterior")),
        detalhes_acompanhamento=_text(payload, "detalhes_acompanhamento") or None,
        recomendacoes=_text(payload, "recomendacoes") or None,
        documentos=tuple(item.entrada for item in pending),
    )


def storage_path(resultado_id: int, bundle: str, filename: str, when: date | None = None) -> str:
    when = when or date.today()
    return f"{STORAGE_PREFIX}/{when:%Y/%m/%d}/{resultado_id}/{bundle}/{filename}"


def _sanitized_filename(filename: str, index: int, used: set[str]) -> str:
    cleaned = secure_filename(filename or "") or f"arquivo-{index}.bin"
    candidate = cleaned
    suffix = 1
    while candidate in used:
        candidate = f"{suffix}_{cleaned}"
        suffix += 1
    used.add(candidate)
    return candidate


def _taken_names(resultado_id: int, bundle: str, when: date) -> set[str]:
    """File names already present in a result's bundle folder, stored or referenced."""
    folder = storage_path(resultado_id, bundle, "", when).rstrip("/")
    taken = {path.rsplit("/", 1)[-1] for path in blob_store().iter_paths(folder)}
    referenced = db.session.query(DocumentoComprobatorio.caminho_arquivo).filter(
        DocumentoComprobatorio.caminho_arquivo.startswith(f"{folder}/", autoescape=True)
    )
    taken.update(path.rsplit("/", 1)[-1] for (path,) in referenced)
    return taken


def _owns_blob(documento: DocumentoComprobatorio) -> bool:
    # resultado_cessacao/<yyyy>/<mm>/<dd>/<resultado_id>/<bundle>/<file>
    path = documento.caminho_arquivo or ""
    parts = path.split("/")
    return is_managed_path(path) and len(parts) == 7 and parts[4] == str(documento.resultado_id)


def _path_in_use(path: str, exclude_id: int | None = None) -> bool:
    query = DocumentoComprobatorio.query.filter(DocumentoComprobatorio.caminho_arquivo == path)
    if exclude_id is not None:
        query = query.filter(DocumentoComprobatorio.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def preview_cessation_result(
    payload: dict,
    prova_social: Sequence[UploadedFile] = (),
    documentacao_tecnica: Sequence[UploadedFile] = (),
    today: date | None = None,
) -> ComplianceVerdict:
    """Runs the compliance checks for a registration payload without writing anything."""
    concessao_id = parse_int(payload.get("concessao_id"), "concessao_id")
    pending = _prepare_documents(_metadata_entries(payload), prova_social, documentacao_tecnica)
    return compliance_validator().evaluate(_cessation_input(payload, concessao_id, pending), today=today)


# -- registration steps -------------------------------------------------------


def _step_lock_concession(concessao_id: int) -> StepResult:
    concessao = db.session.execute(
        select(Concessao).where(Concessao.id == concessao_id).with_for_update()
    ).scalar_one_or_none()
    if concessao is None:
        return StepResult.failure(NotFoundError("Concessao nao encontrada", {"concessao_id": concessao_id}))
    return StepResult.success(concessao)


def _step_load_technician(tecnico_id: int) -> StepResult:
    tecnico = db.session.get(User, tecnico_id)
    if tecnico is None or not tecnico.is_active:
        return StepResult.failure(NotFoundError("Tecnico nao encontrado", {"tecnico_id": tecnico_id}))
    return StepResult.success(tecnico)


def _step_compliance(
    validator: CessationComplianceValidator,
    data: CessationInput,
    concessao: Concessao,
    today: date,
) -> StepResult:
    verdict = validator.evaluate(data, concessao, today)
    if not verdict.admitted:
        return StepResult.failure(verdict.violations[0].to_error())
    return StepResult.success(list(verdict.warnings))


def _step_persist_result(data: CessationInput, concessao: Concessao, tecnico: User) -> StepResult:
    resultado = ResultadoCessacao(
        concessao_id=concessao.id,
        motivo_encerramento=parse_motivo(data.motivo_encerramento),
        justificativa=data.justificativa,
        status_vulnerabilidade=parse_status_vulnerabilidade(data.status_vulnerabilidade),
        avaliacao_vulnerabilidade=data.avaliacao_vulnerabilidade,
        observacoes_tecnicas=data.observacoes_tecnicas,
        acompanhamento_posterior=data.acompanhamento_posterior,
        detalhes_acompanhamento=data.detalhes_acompanhamento if data.acompanhamento_posterior else None,
        recomendacoes=data.recomendacoes,
        tecnico_id=tecnico.id,
    )
    db.session.add(resultado)
    try:
        db.session.flush()
    except IntegrityError:
        return StepResult.failure(
            ConflictError("Ja existe um resultado registrado para esta concessao", {"concessao_id": concessao.id})
        )
    return StepResult.success(resultado)


def _step_process_files(
    resultado: ResultadoCessacao,
    pending: Sequence[_PendingDocument],
    usuario_id: int,
    settings: ComplianceSettings,
    work: _UnitOfWork,
    today: date,
) -> StepResult:
    social = sum(1 for item in pending if item.upload is not None and item.entrada.bundle == BUNDLE_PROVA_SOCIAL)
    technical = sum(
        1 for item in pending if item.upload is not None and item.entrada.bundle == BUNDLE_DOCUMENTACAO_TECNICA
    )
    limits = upload_limit_violations(social, technical, settings)
    if limits:
        return StepResult.failure(limits[0].to_error())

    store = blob_store()
    used_names: dict[str, set[str]] = {}
    claimed: set[str] = set()
    for index, item in enumerate(pending, start=1):
        entrada = item.entrada
        categoria = parse_categoria(entrada.categoria)
        if categoria is None:
            return StepResult.failure(
                ValidationError(f"Documento {index}: categoria invalida", {"categoria": entrada.categoria})
            )
        if item.upload is None:
            path = normalized_storage_path(entrada.caminho_arquivo)
            if path is None or is_managed_path(path):
                return StepResult.failure(
                    ValidationError(
                        f"Documento {index}: caminho do arquivo invalido",
                        {"caminho_arquivo": entrada.caminho_arquivo},
                    )
                )
            if path in claimed or _path_in_use(path):
                return StepResult.failure(
                    ConflictError(
                        f"Documento {index}: arquivo ja vinculado a outro documento", {"caminho_arquivo": path}
                    )
                )
            claimed.add(path)
            work.documents.append(
                DocumentoComprobatorio(
                    resultado_id=resultado.id,
                    categoria=categoria,
                    nome_arquivo=entrada.nome_arquivo,
                    caminho_arquivo=path,
                    tipo_mime=entrada.tipo_mime,
                    tamanho=entrada.tamanho or 0,
                    hash_arquivo=entrada.hash_arquivo,
                    descricao=entrada.descricao,
                    observacoes=entrada.observacoes,
                    usuario_upload_id=usuario_id,
                )
            )
            continue

        content = item.upload.content
        digest = hashlib.sha256(content).hexdigest()
        if entrada.bundle not in used_names:
            used_names[entrada.bundle] = _taken_names(resultado.id, entrada.bundle, today)
        filename = _sanitized_filename(entrada.nome_arquivo, index, used_names[entrada.bundle])
        path = storage_path(resultado.id, entrada.bundle, filename, today)
        stored_path = store.write(
            content,
            path,
            entrada.tipo_mime,
            {"resultado_id": str(resultado.id), "categoria": categoria.value, "sha256": digest},
        )
        work.written_paths.append(stored_path)
        work.documents.append(
            DocumentoComprobatorio(
                resultado_id=resultado.id,
                categoria=categoria,
                nome_arquivo=entrada.nome_arquivo or filename,
                caminho_arquivo=stored_path,
                tipo_mime=entrada.tipo_mime,
                tamanho=len(content),
                hash_arquivo=digest,
                descricao=entrada.descricao,
                observacoes=entrada.observacoes,
                usuario_upload_id=usuario_id,
            )
        )
    return StepResult.success(work.documents)


def _step_bulk_persist(work: _UnitOfWork) -> StepResult:
    if work.documents:
        db.session.add_all(work.documents)
        db.session.flush()
    return StepResult.success(len(work.documents))


def _discard_orphans(paths: Sequence[str]) -> None:
    if not paths:
        return
    store = blob_store()
    for path in paths:
        try:
            store.delete(path)
        except Exception:
            logger.warning("Nao foi possivel remover arquivo orfao %s", path, exc_info=True)


def _rollback(work: _UnitOfWork) -> None:
    db.session.rollback()
    _discard_orphans(work.written_paths)


def register_cessation_result(
    payload: dict,
    tecnico_id: int,
    prova_social: Sequence[UploadedFile] = (),
    documentacao_tecnica: Sequence[UploadedFile] = (),
    today: date | None = None,
) -> RegistrationOutcome:
    """Registers the cessation result of a ceased concession with its documents.

    Runs as one unit of work: either the result and every document row are
    committed together or nothing is. Blobs written before a failure are
    removed best-effort after the rollback.
    """
    today = today or date.today()
    concessao_id = parse_int(payload.get("concessao_id"), "concessao_id")
    pending = _prepare_documents(_metadata_entries(payload), prova_social, documentacao_tecnica)
    data = _cessation_input(payload, concessao_id, pending)
    validator = compliance_validator()
    work = _UnitOfWork()

    try:
        concessao = _check(_step_lock_concession(concessao_id))
        tecnico = _check(_step_load_technician(tecnico_id))
        warnings = _check(_step_compliance(validator, data, concessao, today))
        resultado = _check(_step_persist_result(data, concessao, tecnico))
        _check(_step_process_files(resultado, pending, tecnico.id, validator.settings, work, today))
        _check(_step_bulk_persist(work))
        db.session.commit()
    except StepFailed as exc:
        _rollback(work)
        raise exc.error from None
    except IntegrityError as exc:
        _rollback(work)
        # only a concurrent registration for the same concession is a conflict
        if ResultadoCessacao.query.filter_by(concessao_id=concessao_id).first() is None:
            raise
        raise ConflictError(
            "Ja existe um resultado registrado para esta concessao", {"concessao_id": concessao_id}
        ) from exc
    except Exception:
        _rollback(work)
        raise

    logger.info(
        "Resultado de cessacao %s registrado para concessao %s com %s documento(s)",
        resultado.id,
        concessao_id,
        len(work.documents),
    )
    for warning in warnings:
        logger.warning("Concessao %s: %s", concessao_id, warning)
    events.publish(
        events.cessation_result_registered,
        "resultado_cessacao",
        resultado_id=resultado.id,
        concessao_id=concessao_id,
        motivo_encerramento=resultado.motivo_encerramento.value,
        status_vulnerabilidade=resultado.status_vulnerabilidade.value,
        tecnico_id=tecnico_id,
    )
    return RegistrationOutcome(resultado, list(warnings))


def add_files_to_result(
    resultado_id: int,
    usuario_id: int,
    prova_social: Sequence[UploadedFile] = (),
    documentacao_tecnica: Sequence[UploadedFile] = (),
    metadata: Sequence[dict] | None = None,
    today: date | None = None,
) -> list[DocumentoComprobatorio]:
    today = today or date.today()
    if not prova_social and not documentacao_tecnica:
        raise ValidationError("Nenhum arquivo enviado")
    resultado = get_cessation_result(resultado_id)
    pending = _prepare_documents(_metadata_list(metadata), prova_social, documentacao_tecnica)
    # stored-path metadata is not accepted here, only uploads
    pending = [item for item in pending if item.upload is not None]
    validator = compliance_validator()
    work = _UnitOfWork()

    try:
        _check(_step_load_technician(usuario_id))
        for index, item in enumerate(pending, start=1):
            violations = validator.document_violations(item.entrada, index)
            if violations:
                raise StepFailed(violations[0].to_error())
        _check(_step_process_files(resultado, pending, usuario_id, validator.settings, work, today))
        _check(_step_bulk_persist(work))
        db.session.commit()
    except StepFailed as exc:
        _rollback(work)
        raise exc.error from None
    except Exception:
        _rollback(work)
        raise

    logger.info("%s arquivo(s) adicionados ao resultado %s", len(work.documents), resultado_id)
    return work.documents


# -- queries ------------------------------------------------------------------


def get_cessation_result(resultado_id: int) -> ResultadoCessacao:
    resultado = db.session.get(ResultadoCessacao, resultado_id)
    if not resultado:
        raise NotFoundError("Resultado de cessacao nao encontrado", {"resultado_id": resultado_id})
    return resultado


def get_cessation_result_by_concession(concessao_id: int) -> ResultadoCessacao:
    resultado = ResultadoCessacao.query.filter_by(concessao_id=concessao_id).first()
    if not resultado:
        raise NotFoundError(
            "Nenhum resultado de cessacao registrado para a concessao", {"concessao_id": concessao_id}
        )
    return resultado


def list_cessation_results(filters: dict) -> dict[str, object]:
    page, limit = parse_pagination(filters)
    query = ResultadoCessacao.query

    concessao_id = parse_optional_int(filters.get("concessao_id"), "concessao_id")
    if concessao_id is not None:
        query = query.filter(ResultadoCessacao.concessao_id == concessao_id)
    tecnico_id = parse_optional_int(filters.get("tecnico_id"), "tecnico_id")
    if tecnico_id is not None:
        query = query.filter(ResultadoCessacao.tecnico_id == tecnico_id)
    if (filters.get("motivo_encerramento") or "").strip():
        query = query.filter(ResultadoCessacao.motivo_encerramento == parse_motivo(filters["motivo_encerramento"]))
    if (filters.get("status_vulnerabilidade") or "").strip():
        query = query.filter(
            ResultadoCessacao.status_vulnerabilidade == parse_status_vulnerabilidade(filters["status_vulnerabilidade"])
        )

    data_inicio = parse_optional_iso_date(filters.get("data_inicio"), "data_inicio")
    data_fim = parse_optional_iso_date(filters.get("data_fim"), "data_fim")
    if data_inicio and data_fim:
        if data_inicio > data_fim:
            raise ValidationError(
                "Data inicial posterior a data final",
                {"data_inicio": data_inicio.isoformat(), "data_fim": data_fim.isoformat()},
            )
        max_range = int(current_app.config.get("CESSATION_LIST_MAX_RANGE_DAYS", 365))
        if (data_fim - data_inicio).days > max_range:
            raise ValidationError(
                f"Periodo de consulta nao pode exceder {max_range} dias",
                {"data_inicio": data_inicio.isoformat(), "data_fim": data_fim.isoformat()},
            )
    if data_inicio:
        query = query.filter(
            ResultadoCessacao.data_registro >= datetime.combine(data_inicio, time.min, tzinfo=timezone.utc)
        )
    if data_fim:
        query = query.filter(
            ResultadoCessacao.data_registro
            < datetime.combine(data_fim + timedelta(days=1), time.min, tzinfo=timezone.utc)
        )

    total = query.count()
    items = (
        query.order_by(ResultadoCessacao.data_registro.desc(), ResultadoCessacao.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total, "page": page, "limit": limit}


def _document_of(resultado_id: int, documento_id: int) -> DocumentoComprobatorio:
    get_cessation_result(resultado_id)
    documento = DocumentoComprobatorio.query.filter_by(resultado_id=resultado_id, id=documento_id).first()
    if not documento:
        raise NotFoundError(
            "Documento nao encontrado", {"resultado_id": resultado_id, "documento_id": documento_id}
        )
    return documento


def download_document(resultado_id: int, documento_id: int) -> tuple[BinaryIO, str, str]:
    documento = _document_of(resultado_id, documento_id)
    path = documento.caminho_arquivo
    if is_managed_path(path) and not _owns_blob(documento):
        raise NotFoundError("Arquivo do documento nao encontrado no armazenamento", {"documento_id": documento.id})
    try:
        stream = blob_store().read_stream(path)
    except (FileNotFoundError, ValueError) as exc:
        raise NotFoundError(
            "Arquivo do documento nao encontrado no armazenamento", {"documento_id": documento.id}
        ) from exc
    return stream, documento.nome_arquivo, documento.tipo_mime or "application/octet-stream"


def delete_document(resultado_id: int, documento_id: int, usuario_id: int | None = None) -> None:
    documento = _document_of(resultado_id, documento_id)
    path = documento.caminho_arquivo
    # files referenced by path metadata were not written here and stay in place
    if _owns_blob(documento) and not _path_in_use(path, exclude_id=documento.id):
        try:
            blob_store().delete(path)
        except Exception:
            logger.warning("Falha ao remover arquivo %s do armazenamento", path, exc_info=True)
    db.session.delete(documento)
    db.session.commit()
    logger.info("Documento %s removido do resultado %s por usuario %s", documento_id, resultado_id, usuario_id)


def sweep_orphan_blobs(dry_run: bool = False) -> list[str]:
    """Removes stored cessation files that no document row references."""
    known = {path for (path,) in db.session.query(DocumentoComprobatorio.caminho_arquivo).all()}
    store = blob_store()
    orphans = [path for path in store.iter_paths(STORAGE_PREFIX) if path not in known]
    if not dry_run:
        for path in orphans:
            try:
                store.delete(path)
            except Exception:
                logger.warning("Nao foi possivel remover arquivo orfao %s", path, exc_info=True)
    logger.info("Varredura de orfaos: %s arquivo(s)%s", len(orphans), " (simulacao)" if dry_run else "")
    return orphans
