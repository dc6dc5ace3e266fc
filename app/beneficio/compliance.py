from __future__ import annotations

import posixpath
import unicodedata
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType

from app.core.errors import ConflictError, NotFoundError, ValidationError, Violation
from app.core.extensions import db
from app.core.models import (
    CategoriaDocumento,
    Concessao,
    MotivoEncerramento,
    ResultadoCessacao,
    StatusConcessao,
    StatusVulnerabilidade,
)

_IMAGES = frozenset({"image/jpeg", "image/png", "image/webp", "image/heic"})
_PDF = frozenset({"application/pdf"})
_OFFICE = frozenset(
    {
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.oasis.opendocument.text",
    }
)
_MEDIA = frozenset({"audio/mpeg", "audio/ogg", "video/mp4"})

# Blobs below this prefix are written by the registration service only.
STORAGE_PREFIX = "resultado_cessacao"

DEFAULT_MIME_ALLOWLIST: Mapping[CategoriaDocumento, frozenset[str]] = MappingProxyType(
    {
        CategoriaDocumento.FOTOGRAFIA: _IMAGES,
        CategoriaDocumento.DOCUMENTO_PESSOAL: _IMAGES | _PDF,
        CategoriaDocumento.COMPROVANTE_RENDA: _IMAGES | _PDF,
        CategoriaDocumento.COMPROVANTE_RESIDENCIA: _IMAGES | _PDF,
        CategoriaDocumento.RELATORIO_TECNICO: _PDF | _OFFICE,
        CategoriaDocumento.DECLARACAO_TERCEIROS: _IMAGES | _PDF | _OFFICE,
        CategoriaDocumento.LAUDO_MEDICO: _IMAGES | _PDF,
        CategoriaDocumento.COMPROVANTE_MATRICULA: _IMAGES | _PDF,
        CategoriaDocumento.DOCUMENTO_PROGRAMA_SOCIAL: _IMAGES | _PDF,
        CategoriaDocumento.ATA_REUNIAO: _PDF | _OFFICE | _IMAGES,
        CategoriaDocumento.PROVA_SOCIAL: _IMAGES | _PDF | _MEDIA,
        CategoriaDocumento.DOCUMENTACAO_TECNICA: _PDF | _OFFICE | _IMAGES,
        CategoriaDocumento.OUTROS: _IMAGES | _PDF | _OFFICE | _MEDIA,
    }
)

BUNDLE_PROVA_SOCIAL = "prova_social"
BUNDLE_DOCUMENTACAO_TECNICA = "documentacao_tecnica"


@dataclass(frozen=True)
class CessationRule:
    forbidden_statuses: frozenset[StatusVulnerabilidade] = frozenset()
    required_documents: tuple[CategoriaDocumento, ...] = ()
    # at least one of these
    alternative_documents: tuple[CategoriaDocumento, ...] = ()
    min_notes_length: int = 0
    notes_keywords: tuple[str, ...] = ()
    notes_keywords_message: str = ""


CESSATION_RULES: Mapping[MotivoEncerramento, CessationRule] = MappingProxyType(
    {
        MotivoEncerramento.SUPERACAO_VULNERABILIDADE: CessationRule(
            forbidden_statuses=frozenset({StatusVulnerabilidade.AGRAVADA, StatusVulnerabilidade.MANTIDA}),
            required_documents=(CategoriaDocumento.COMPROVANTE_RENDA, CategoriaDocumento.FOTOGRAFIA),
            min_notes_length=50,
        ),
        MotivoEncerramento.MELHORIA_SOCIOECONOMICA: CessationRule(
            required_documents=(CategoriaDocumento.COMPROVANTE_RENDA,),
        ),
        MotivoEncerramento.MUDANCA_MUNICIPIO: CessationRule(
            required_documents=(CategoriaDocumento.COMPROVANTE_RESIDENCIA, CategoriaDocumento.FOTOGRAFIA),
        ),
        MotivoEncerramento.OBITO_BENEFICIARIO: CessationRule(
            forbidden_statuses=frozenset(
                {StatusVulnerabilidade.EM_SUPERACAO, StatusVulnerabilidade.REQUER_REAVALIACAO}
            ),
            alternative_documents=(CategoriaDocumento.DOCUMENTO_PESSOAL, CategoriaDocumento.LAUDO_MEDICO),
        ),
        MotivoEncerramento.DESCUMPRIMENTO_CONDICIONALIDADES: CessationRule(
            required_documents=(CategoriaDocumento.RELATORIO_TECNICO, CategoriaDocumento.FOTOGRAFIA),
            notes_keywords=("tentativa", "contato", "visita", "busca ativa", "acompanhamento"),
            notes_keywords_message="As observacoes devem descrever as tentativas de acompanhamento realizadas",
        ),
        MotivoEncerramento.AGRAVAMENTO_SITUACAO: CessationRule(
            forbidden_statuses=frozenset(
                {StatusVulnerabilidade.SUPERADA, StatusVulnerabilidade.TEMPORARIAMENTE_RESOLVIDA}
            ),
        ),
        MotivoEncerramento.TERMINO_PRAZO: CessationRule(),
        MotivoEncerramento.SOLICITACAO_BENEFICIARIO: CessationRule(),
        MotivoEncerramento.TRANSFERENCIA_PROGRAMA: CessationRule(),
        MotivoEncerramento.OUTROS: CessationRule(),
    }
)

STATUS_NOTES_KEYWORDS: Mapping[StatusVulnerabilidade, tuple[str, ...]] = MappingProxyType(
    {
        StatusVulnerabilidade.REQUER_REAVALIACAO: ("reavalia",),
        StatusVulnerabilidade.AGRAVADA: ("agrav",),
    }
)


@dataclass(frozen=True)
class ComplianceSettings:
    min_notes_length: int = 10
    deadline_days: int = 30
    warning_days: int = 25
    max_file_size: int = 10 * 1024 * 1024
    max_social_proof_files: int = 5
    max_technical_files: int = 10
    max_total_files: int = 15
    mime_allowlist: Mapping[CategoriaDocumento, frozenset[str]] = field(
        default_factory=lambda: DEFAULT_MIME_ALLOWLIST
    )

    @classmethod
    def from_config(cls, config) -> ComplianceSettings:
        return cls(
            deadline_days=int(config.get("CESSATION_DEADLINE_DAYS", 30)),
            warning_days=int(config.get("CESSATION_WARNING_DAYS", 25)),
            max_file_size=int(config.get("CESSATION_MAX_FILE_SIZE", 10 * 1024 * 1024)),
            max_social_proof_files=int(config.get("CESSATION_MAX_SOCIAL_PROOF_FILES", 5)),
            max_technical_files=int(config.get("CESSATION_MAX_TECHNICAL_FILES", 10)),
            max_total_files=int(config.get("CESSATION_MAX_TOTAL_FILES", 15)),
        )


@dataclass(frozen=True)
class DocumentInput:
    categoria: str
    nome_arquivo: str
    caminho_arquivo: str | None = None
    tipo_mime: str | None = None
    tamanho: int = 0
    descricao: str = ""
    observacoes: str = ""
    hash_arquivo: str | None = None
    # Set for files still to be uploaded; their storage path is assigned later.
    bundle: str | None = None


@dataclass(frozen=True)
class CessationInput:
    concessao_id: int
    motivo_encerramento: str
    status_vulnerabilidade: str
    observacoes_tecnicas: str
    justificativa: str = ""
    avaliacao_vulnerabilidade: str = ""
    acompanhamento_posterior: bool = False
    detalhes_acompanhamento: str | None = None
    recomendacoes: str | None = None
    documentos: tuple[DocumentInput, ...] = ()


@dataclass(frozen=True)
class ComplianceVerdict:
    violations: tuple[Violation, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def admitted(self) -> bool:
        return not self.violations

    def raise_first(self) -> tuple[str, ...]:
        if self.violations:
            raise self.violations[0].to_error()
        return self.warnings


def text_value(value) -> str:
    """Payload fields may arrive as numbers or booleans from JSON clients."""
    if value is None:
        return ""
    return str(value).strip()


def normalized_storage_path(path) -> str | None:
    """Relative POSIX form of a client supplied path, or None when it escapes the root."""
    raw = text_value(path).replace("\\", "/")
    if not raw or raw.startswith("/"):
        return None
    normalized = posixpath.normpath(raw)
    if normalized in (".", "..") or normalized.startswith("../"):
        return None
    return normalized


def is_managed_path(path: str) -> bool:
    return path == STORAGE_PREFIX or path.startswith(f"{STORAGE_PREFIX}/")


def _normalize(text: str | None) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def _mentions_any(text: str | None, keywords: Sequence[str]) -> bool:
    normalized = _normalize(text)
    return any(_normalize(keyword) in normalized for keyword in keywords)


def parse_motivo(value) -> MotivoEncerramento:
    if isinstance(value, MotivoEncerramento):
        return value
    raw = text_value(value).upper()
    try:
        return MotivoEncerramento[raw]
    except KeyError as exc:
        raise ValidationError("Motivo de encerramento invalido", {"motivo_encerramento": value}) from exc


def parse_status_vulnerabilidade(value) -> StatusVulnerabilidade:
    if isinstance(value, StatusVulnerabilidade):
        return value
    raw = text_value(value).upper()
    try:
        return StatusVulnerabilidade[raw]
    except KeyError as exc:
        raise ValidationError("Status de vulnerabilidade invalido", {"status_vulnerabilidade": value}) from exc


def parse_categoria(value) -> CategoriaDocumento | None:
    if isinstance(value, CategoriaDocumento):
        return value
    raw = text_value(value).upper()
    return CategoriaDocumento.__members__.get(raw)


def upload_limit_violations(
    social_proof_count: int,
    technical_count: int,
    settings: ComplianceSettings,
) -> list[Violation]:
    violations: list[Violation] = []
    if social_proof_count > settings.max_social_proof_files:
        violations.append(
            Violation(
                ValidationError,
                f"Maximo de {settings.max_social_proof_files} arquivos de prova social permitidos",
                {"prova_social": social_proof_count},
            )
        )
    if technical_count > settings.max_technical_files:
        violations.append(
            Violation(
                ValidationError,
                f"Maximo de {settings.max_technical_files} arquivos de documentacao tecnica permitidos",
                {"documentacao_tecnica": technical_count},
            )
        )
    if social_proof_count + technical_count > settings.max_total_files:
        violations.append(
            Violation(
                ValidationError,
                f"Maximo de {settings.max_total_files} arquivos por envio",
                {"total": social_proof_count + technical_count},
            )
        )
    return violations


class CessationComplianceValidator:
    """Admission rules for registering the result of a ceased concession.

    ``evaluate`` collects every violation in check order (precondition,
    reason/status compatibility, free text, document matrix, per-document
    checks, registration deadline) plus advisory warnings. It never writes.
    """

    def __init__(self, settings: ComplianceSettings | None = None):
        self.settings = settings or ComplianceSettings()

    def evaluate(
        self,
        data: CessationInput,
        concessao: Concessao | None = None,
        today: date | None = None,
    ) -> ComplianceVerdict:
        concessao = concessao or db.session.get(Concessao, data.concessao_id)
        precondition = self._precondition_violation(data, concessao)
        if precondition:
            return ComplianceVerdict((precondition,))
        try:
            motivo = parse_motivo(data.motivo_encerramento)
            status = parse_status_vulnerabilidade(data.status_vulnerabilidade)
        except ValidationError as exc:
            return ComplianceVerdict((Violation(ValidationError, exc.message, exc.details),))

        rule = CESSATION_RULES[motivo]
        violations: list[Violation] = []
        violations.extend(self._compatibility_violations(motivo, status, rule))
        violations.extend(self._free_text_violations(data, motivo, status, rule))
        violations.extend(self._document_matrix_violations(data.documentos, motivo, rule))
        violations.extend(self._document_violations(data.documentos))
        deadline_violations, warnings = self._deadline(concessao, today or date.today())
        violations.extend(deadline_violations)
        return ComplianceVerdict(tuple(violations), tuple(warnings))

    def ensure(
        self,
        data: CessationInput,
        concessao: Concessao | None = None,
        today: date | None = None,
    ) -> tuple[str, ...]:
        return self.evaluate(data, concessao, today).raise_first()

    def _precondition_violation(self, data: CessationInput, concessao: Concessao | None) -> Violation | None:
        if concessao is None:
            return Violation(NotFoundError, "Concessao nao encontrada", {"concessao_id": data.concessao_id})
        if concessao.status != StatusConcessao.CESSADO:
            return Violation(
                ConflictError,
                "So e possivel registrar resultado para concessoes com status CESSADO",
                {"concessao_id": concessao.id, "status": concessao.status.value},
            )
        existing = ResultadoCessacao.query.filter_by(concessao_id=concessao.id).first()
        if existing:
            return Violation(
                ConflictError,
                "Ja existe um resultado registrado para esta concessao",
                {"concessao_id": concessao.id, "resultado_id": existing.id},
            )
        return None

    def _compatibility_violations(
        self,
        motivo: MotivoEncerramento,
        status: StatusVulnerabilidade,
        rule: CessationRule,
    ) -> list[Violation]:
        if status not in rule.forbidden_statuses:
            return []
        return [
            Violation(
                ValidationError,
                f"Combinacao incompativel: motivo {motivo.value} com status {status.value}",
                {"motivo_encerramento": motivo.value, "status_vulnerabilidade": status.value},
            )
        ]

    def _free_text_violations(
        self,
        data: CessationInput,
        motivo: MotivoEncerramento,
        status: StatusVulnerabilidade,
        rule: CessationRule,
    ) -> list[Violation]:
        notes = (data.observacoes_tecnicas or "").strip()
        violations: list[Violation] = []
        minimum = max(self.settings.min_notes_length, rule.min_notes_length)
        if len(notes) < minimum:
            violations.append(
                Violation(
                    ValidationError,
                    f"Observacoes tecnicas devem ter pelo menos {minimum} caracteres para {motivo.value}",
                    {"campo": "observacoes_tecnicas", "minimo": minimum, "atual": len(notes)},
                )
            )
        if rule.notes_keywords and not _mentions_any(notes, rule.notes_keywords):
            violations.append(
                Violation(
                    ValidationError,
                    rule.notes_keywords_message,
                    {"campo": "observacoes_tecnicas", "motivo_encerramento": motivo.value},
                )
            )
        status_keywords = STATUS_NOTES_KEYWORDS.get(status)
        if status_keywords and not _mentions_any(notes, status_keywords):
            violations.append(
                Violation(
                    ValidationError,
                    f"Observacoes tecnicas devem contextualizar o status {status.value}",
                    {"campo": "observacoes_tecnicas", "status_vulnerabilidade": status.value},
                )
            )
        if data.acompanhamento_posterior and not (data.detalhes_acompanhamento or "").strip():
            violations.append(
                Violation(
                    ValidationError,
                    "Detalhes do acompanhamento sao obrigatorios quando ha acompanhamento posterior",
                    {"campo": "detalhes_acompanhamento"},
                )
            )
        return violations

    def _document_matrix_violations(
        self,
        documentos: Sequence[DocumentInput],
        motivo: MotivoEncerramento,
        rule: CessationRule,
    ) -> list[Violation]:
        present = {parse_categoria(doc.categoria) for doc in documentos}
        violations: list[Violation] = []
        missing = [categoria.value for categoria in rule.required_documents if categoria not in present]
        if missing:
            violations.append(
                Violation(
                    ValidationError,
                    f"Documentos obrigatorios ausentes para {motivo.value}: {', '.join(missing)}",
                    {"motivo_encerramento": motivo.value, "missing": missing},
                )
            )
        if rule.alternative_documents and not present.intersection(rule.alternative_documents):
            alternatives = [categoria.value for categoria in rule.alternative_documents]
            violations.append(
                Violation(
                    ValidationError,
                    f"Informe pelo menos um dos documentos para {motivo.value}: {' ou '.join(alternatives)}",
                    {"motivo_encerramento": motivo.value, "missing": alternatives, "any_of": True},
                )
            )
        return violations

    def _document_violations(self, documentos: Sequence[DocumentInput]) -> list[Violation]:
        violations: list[Violation] = []
        social = sum(1 for doc in documentos if doc.bundle == BUNDLE_PROVA_SOCIAL)
        technical = sum(1 for doc in documentos if doc.bundle == BUNDLE_DOCUMENTACAO_TECNICA)
        violations.extend(upload_limit_violations(social, technical, self.settings))
        for index, doc in enumerate(documentos, start=1):
            violations.extend(self.document_violations(doc, index))
        return violations

    def document_violations(self, doc: DocumentInput, index: int = 1) -> list[Violation]:
        label = f"Documento {index}"
        categoria = parse_categoria(doc.categoria)
        if categoria is None:
            return [Violation(ValidationError, f"{label}: categoria invalida", {"categoria": doc.categoria})]
        violations: list[Violation] = []
        if not text_value(doc.nome_arquivo):
            violations.append(Violation(ValidationError, f"{label}: nome do arquivo obrigatorio", {"indice": index}))
        if doc.bundle is None:
            violations.extend(self._stored_path_violations(doc, label, index))
        if doc.tamanho is not None and doc.tamanho < 0:
            violations.append(
                Violation(
                    ValidationError,
                    f"{label}: tamanho do arquivo nao pode ser negativo",
                    {"indice": index, "tamanho": doc.tamanho},
                )
            )
        if doc.tamanho is not None and doc.tamanho > self.settings.max_file_size:
            violations.append(
                Violation(
                    ValidationError,
                    f"{label}: arquivo excede o tamanho maximo de {self.settings.max_file_size // (1024 * 1024)}MB",
                    {"indice": index, "tamanho": doc.tamanho},
                )
            )
        mime = text_value(doc.tipo_mime).lower()
        if mime and mime not in self.settings.mime_allowlist.get(categoria, frozenset()):
            violations.append(
                Violation(
                    ValidationError,
                    f"{label}: tipo {mime} nao permitido para {categoria.value}",
                    {"indice": index, "tipo_mime": mime, "categoria": categoria.value},
                )
            )
        return violations

    @staticmethod
    def _stored_path_violations(doc: DocumentInput, label: str, index: int) -> list[Violation]:
        if not text_value(doc.caminho_arquivo):
            return [Violation(ValidationError, f"{label}: caminho do arquivo obrigatorio", {"indice": index})]
        path = normalized_storage_path(doc.caminho_arquivo)
        if path is None:
            return [
                Violation(
                    ValidationError,
                    f"{label}: caminho do arquivo invalido",
                    {"indice": index, "caminho_arquivo": text_value(doc.caminho_arquivo)},
                )
            ]
        if is_managed_path(path):
            # files in the managed area only enter through an upload
            return [
                Violation(
                    ValidationError,
                    f"{label}: caminho reservado ao armazenamento de resultados; envie o arquivo",
                    {"indice": index, "caminho_arquivo": path},
                )
            ]
        return []

    def _deadline(self, concessao: Concessao, today: date) -> tuple[list[Violation], list[str]]:
        closure = concessao.data_encerramento
        if closure is None:
            return [], []
        elapsed = (today - closure).days
        if elapsed > self.settings.deadline_days:
            return [
                Violation(
                    ValidationError,
                    f"Prazo para registro expirado: {elapsed} dias desde o encerramento "
                    f"(limite de {self.settings.deadline_days} dias)",
                    {"dias_decorridos": elapsed, "limite": self.settings.deadline_days},
                )
            ], []
        if elapsed > self.settings.warning_days:
            remaining = self.settings.deadline_days - elapsed
            return [], [f"Prazo para registro proximo do fim: restam {remaining} dias"]
        return [], []
