from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from enum import Enum

from flask_login import UserMixin
from sqlalchemy import JSON, CheckConstraint, Enum as SAEnum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import generate_password_hash

from app.core.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Periodicidade(str, Enum):
    UNICA = "UNICA"
    RECORRENTE = "RECORRENTE"


class StatusSolicitacao(str, Enum):
    RASCUNHO = "RASCUNHO"
    ABERTA = "ABERTA"
    PENDENTE = "PENDENTE"
    EM_ANALISE = "EM_ANALISE"
    APROVADA = "APROVADA"
    INDEFERIDA = "INDEFERIDA"
    CANCELADA = "CANCELADA"


class TipoSolicitacao(str, Enum):
    ORIGINAL = "ORIGINAL"
    RENOVACAO = "RENOVACAO"


class StatusConcessao(str, Enum):
    PENDENTE = "PENDENTE"
    ATIVO = "ATIVO"
    SUSPENSO = "SUSPENSO"
    BLOQUEADO = "BLOQUEADO"
    CESSADO = "CESSADO"
    ENCERRADO = "ENCERRADO"


class MotivoEncerramento(str, Enum):
    SUPERACAO_VULNERABILIDADE = "SUPERACAO_VULNERABILIDADE"
    MELHORIA_SOCIOECONOMICA = "MELHORIA_SOCIOECONOMICA"
    MUDANCA_MUNICIPIO = "MUDANCA_MUNICIPIO"
    OBITO_BENEFICIARIO = "OBITO_BENEFICIARIO"
    DESCUMPRIMENTO_CONDICIONALIDADES = "DESCUMPRIMENTO_CONDICIONALIDADES"
    AGRAVAMENTO_SITUACAO = "AGRAVAMENTO_SITUACAO"
    TERMINO_PRAZO = "TERMINO_PRAZO"
    SOLICITACAO_BENEFICIARIO = "SOLICITACAO_BENEFICIARIO"
    TRANSFERENCIA_PROGRAMA = "TRANSFERENCIA_PROGRAMA"
    OUTROS = "OUTROS"


class StatusVulnerabilidade(str, Enum):
    SUPERADA = "SUPERADA"
    EM_SUPERACAO = "EM_SUPERACAO"
    TEMPORARIAMENTE_RESOLVIDA = "TEMPORARIAMENTE_RESOLVIDA"
    MANTIDA = "MANTIDA"
    AGRAVADA = "AGRAVADA"
    REQUER_REAVALIACAO = "REQUER_REAVALIACAO"


class CategoriaDocumento(str, Enum):
    FOTOGRAFIA = "FOTOGRAFIA"
    DOCUMENTO_PESSOAL = "DOCUMENTO_PESSOAL"
    COMPROVANTE_RENDA = "COMPROVANTE_RENDA"
    COMPROVANTE_RESIDENCIA = "COMPROVANTE_RESIDENCIA"
    RELATORIO_TECNICO = "RELATORIO_TECNICO"
    DECLARACAO_TERCEIROS = "DECLARACAO_TERCEIROS"
    LAUDO_MEDICO = "LAUDO_MEDICO"
    COMPROVANTE_MATRICULA = "COMPROVANTE_MATRICULA"
    DOCUMENTO_PROGRAMA_SOCIAL = "DOCUMENTO_PROGRAMA_SOCIAL"
    ATA_REUNIAO = "ATA_REUNIAO"
    PROVA_SOCIAL = "PROVA_SOCIAL"
    DOCUMENTACAO_TECNICA = "DOCUMENTACAO_TECNICA"
    OUTROS = "OUTROS"


OPEN_REQUEST_STATUSES = (
    StatusSolicitacao.RASCUNHO,
    StatusSolicitacao.ABERTA,
    StatusSolicitacao.PENDENTE,
    StatusSolicitacao.EM_ANALISE,
)
NON_TERMINAL_CONCESSION_STATUSES = (
    StatusConcessao.PENDENTE,
    StatusConcessao.ATIVO,
    StatusConcessao.SUSPENSO,
    StatusConcessao.BLOQUEADO,
)
CLOSED_CONCESSION_STATUSES = (StatusConcessao.CESSADO, StatusConcessao.ENCERRADO)


class Unidade(db.Model):
    # CRAS / CREAS / sede responsavel pelo atendimento
    __tablename__ = "unidade"

    id: Mapped[int] = mapped_column(primary_key=True)
    nome: Mapped[str] = mapped_column(db.String(120), unique=True, nullable=False)
    sigla: Mapped[str] = mapped_column(db.String(30), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    memberships = relationship("Membership", back_populates="unidade")


class User(UserMixin, db.Model):
    __tablename__ = "user_account"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(db.String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    password_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    memberships = relationship("Membership", back_populates="user")


class Membership(db.Model):
    __tablename__ = "membership"
    __table_args__ = (UniqueConstraint("user_id", "unidade_id", name="uq_membership_user_unidade"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user_account.id"), nullable=False)
    unidade_id: Mapped[int] = mapped_column(ForeignKey("unidade.id"), nullable=False)
    role: Mapped[str] = mapped_column(db.String(30), nullable=False, default="tecnico")

    user = relationship("User", back_populates="memberships")
    unidade = relationship("Unidade", back_populates="memberships")


class Cidadao(db.Model):
    # beneficiario ou solicitante
    __tablename__ = "cidadao"

    id: Mapped[int] = mapped_column(primary_key=True)
    nome: Mapped[str] = mapped_column(db.String(160), nullable=False)
    cpf: Mapped[str] = mapped_column(db.String(14), unique=True, nullable=False)
    nis: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)


class TipoBeneficio(db.Model):
    __tablename__ = "tipo_beneficio"

    id: Mapped[int] = mapped_column(primary_key=True)
    codigo: Mapped[str] = mapped_column(db.String(40), unique=True, nullable=False)
    nome: Mapped[str] = mapped_column(db.String(120), nullable=False)
    periodicidade: Mapped[Periodicidade] = mapped_column(
        SAEnum(Periodicidade, name="periodicidade"),
        nullable=False,
        default=Periodicidade.UNICA,
    )
    max_parcelas: Mapped[int] = mapped_column(nullable=False, default=12)
    ativo: Mapped[bool] = mapped_column(nullable=False, default=True)

    @property
    def recorrente(self) -> bool:
        return self.periodicidade == Periodicidade.RECORRENTE


class DeterminacaoJudicial(db.Model):
    __tablename__ = "determinacao_judicial"

    id: Mapped[int] = mapped_column(primary_key=True)
    numero_processo: Mapped[str] = mapped_column(db.String(40), unique=True, nullable=False)
    cidadao_id: Mapped[int | None] = mapped_column(ForeignKey("cidadao.id"), nullable=True)
    ativo: Mapped[bool] = mapped_column(nullable=False, default=True)
    documento_path: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    data_decisao: Mapped[date | None] = mapped_column(nullable=True)

    @property
    def tem_documento(self) -> bool:
        return bool((self.documento_path or "").strip())


class Solicitacao(db.Model):
    __tablename__ = "solicitacao"
    __table_args__ = (
        Index("ix_solicitacao_beneficiario_tipo_status", "beneficiario_id", "tipo_beneficio_id", "status"),
        Index("ix_solicitacao_unidade_status_abertura", "unidade_id", "status", "data_abertura"),
        CheckConstraint("quantidade_parcelas >= 1", name="ck_solicitacao_parcelas"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    protocolo: Mapped[str] = mapped_column(db.String(30), unique=True, nullable=False)
    beneficiario_id: Mapped[int] = mapped_column(ForeignKey("cidadao.id"), nullable=False)
    solicitante_id: Mapped[int | None] = mapped_column(ForeignKey("cidadao.id"), nullable=True)
    tipo_beneficio_id: Mapped[int] = mapped_column(ForeignKey("tipo_beneficio.id"), nullable=False)
    unidade_id: Mapped[int] = mapped_column(ForeignKey("unidade.id"), nullable=False)
    tecnico_id: Mapped[int] = mapped_column(ForeignKey("user_account.id"), nullable=False)
    data_abertura: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    status: Mapped[StatusSolicitacao] = mapped_column(
        SAEnum(StatusSolicitacao, name="status_solicitacao"),
        nullable=False,
        default=StatusSolicitacao.RASCUNHO,
    )
    sub_status: Mapped[str | None] = mapped_column(db.String(40), nullable=True)
    aprovador_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    data_aprovacao: Mapped[datetime | None] = mapped_column(nullable=True)
    parecer: Mapped[str] = mapped_column(db.String(1000), nullable=False, default="")
    liberador_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    data_liberacao: Mapped[datetime | None] = mapped_column(nullable=True)
    determinacao_judicial_flag: Mapped[bool] = mapped_column(nullable=False, default=False)
    determinacao_judicial_id: Mapped[int | None] = mapped_column(
        ForeignKey("determinacao_judicial.id"),
        nullable=True,
    )
    quantidade_parcelas: Mapped[int] = mapped_column(nullable=False, default=1)
    prioridade: Mapped[int] = mapped_column(nullable=False, default=3)
    tipo: Mapped[TipoSolicitacao] = mapped_column(
        SAEnum(TipoSolicitacao, name="tipo_solicitacao"),
        nullable=False,
        default=TipoSolicitacao.ORIGINAL,
    )
    # Back-references by id only; resolved on demand by the services.
    solicitacao_original_id: Mapped[int | None] = mapped_column(ForeignKey("solicitacao.id"), nullable=True)
    solicitacao_renovada_id: Mapped[int | None] = mapped_column(ForeignKey("solicitacao.id"), nullable=True)
    dados_beneficio: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    observacoes: Mapped[str] = mapped_column(db.String(1000), nullable=False, default="")
    motivo_indeferimento: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    prazo_analise: Mapped[date | None] = mapped_column(nullable=True)
    prazo_documentos: Mapped[date | None] = mapped_column(nullable=True)
    prazo_processamento: Mapped[date | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    beneficiario = relationship("Cidadao", foreign_keys=[beneficiario_id])
    solicitante = relationship("Cidadao", foreign_keys=[solicitante_id])
    tipo_beneficio = relationship("TipoBeneficio")
    unidade = relationship("Unidade")
    tecnico = relationship("User", foreign_keys=[tecnico_id])
    determinacao_judicial = relationship("DeterminacaoJudicial")
    concessao = relationship("Concessao", back_populates="solicitacao", uselist=False)

    __mapper_args__ = {"version_id_col": version}

    @validates("quantidade_parcelas")
    def validate_quantidade_parcelas(self, _key, value):
        if value is not None and int(value) < 1:
            raise ValueError("Quantidade de parcelas deve ser no minimo 1")
        return value

    @property
    def aberta(self) -> bool:
        return self.status in OPEN_REQUEST_STATUSES


class Concessao(db.Model):
    __tablename__ = "concessao"
    __table_args__ = (
        CheckConstraint(
            "data_encerramento IS NULL OR data_encerramento >= data_inicio",
            name="ck_concessao_dates",
        ),
        Index("ix_concessao_beneficiario_tipo_status", "beneficiario_id", "tipo_beneficio_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    solicitacao_id: Mapped[int] = mapped_column(ForeignKey("solicitacao.id"), unique=True, nullable=False)
    # Denormalized from the request so the duplicate/carencia checks stay single-table.
    beneficiario_id: Mapped[int] = mapped_column(ForeignKey("cidadao.id"), nullable=False)
    tipo_beneficio_id: Mapped[int] = mapped_column(ForeignKey("tipo_beneficio.id"), nullable=False)
    status: Mapped[StatusConcessao] = mapped_column(
        SAEnum(StatusConcessao, name="status_concessao"),
        nullable=False,
        default=StatusConcessao.PENDENTE,
    )
    data_inicio: Mapped[date] = mapped_column(nullable=False)
    data_fim_prevista: Mapped[date | None] = mapped_column(nullable=True)
    data_encerramento: Mapped[date | None] = mapped_column(nullable=True)
    ordem_prioridade: Mapped[int] = mapped_column(nullable=False, default=3)
    determinacao_judicial_flag: Mapped[bool] = mapped_column(nullable=False, default=False)
    motivo_status: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")
    data_revisao_suspensao: Mapped[date | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    solicitacao = relationship("Solicitacao", back_populates="concessao")
    beneficiario = relationship("Cidadao")
    tipo_beneficio = relationship("TipoBeneficio")
    historico = relationship("HistoricoConcessao", back_populates="concessao", cascade="all, delete-orphan")
    resultado = relationship("ResultadoCessacao", back_populates="concessao", uselist=False)

    @property
    def nao_terminal(self) -> bool:
        return self.status in NON_TERMINAL_CONCESSION_STATUSES


class HistoricoConcessao(db.Model):
    __tablename__ = "historico_concessao"
    __table_args__ = (Index("ix_historico_concessao_at", "concessao_id", "event_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    concessao_id: Mapped[int] = mapped_column(ForeignKey("concessao.id"), nullable=False)
    status_anterior: Mapped[str | None] = mapped_column(db.String(20), nullable=True)
    status_novo: Mapped[str] = mapped_column(db.String(20), nullable=False)
    motivo: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")
    event_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)

    concessao = relationship("Concessao", back_populates="historico")
    user = relationship("User")


class ResultadoCessacao(db.Model):
    __tablename__ = "resultado_cessacao"
    __table_args__ = (
        Index("ix_resultado_cessacao_motivo_registro", "motivo_encerramento", "data_registro"),
        Index("ix_resultado_cessacao_tecnico_registro", "tecnico_id", "data_registro"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    concessao_id: Mapped[int] = mapped_column(ForeignKey("concessao.id"), unique=True, nullable=False)
    motivo_encerramento: Mapped[MotivoEncerramento] = mapped_column(
        SAEnum(MotivoEncerramento, name="motivo_encerramento"),
        nullable=False,
    )
    justificativa: Mapped[str] = mapped_column(db.String(1000), nullable=False, default="")
    status_vulnerabilidade: Mapped[StatusVulnerabilidade] = mapped_column(
        SAEnum(StatusVulnerabilidade, name="status_vulnerabilidade"),
        nullable=False,
    )
    avaliacao_vulnerabilidade: Mapped[str] = mapped_column(db.String(1000), nullable=False, default="")
    observacoes_tecnicas: Mapped[str] = mapped_column(db.String(2000), nullable=False)
    acompanhamento_posterior: Mapped[bool] = mapped_column(nullable=False, default=False)
    detalhes_acompanhamento: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    recomendacoes: Mapped[str | None] = mapped_column(db.String(500), nullable=True)
    tecnico_id: Mapped[int] = mapped_column(ForeignKey("user_account.id"), nullable=False)
    data_registro: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    concessao = relationship("Concessao", back_populates="resultado")
    tecnico = relationship("User")
    documentos = relationship(
        "DocumentoComprobatorio",
        back_populates="resultado",
        cascade="all, delete-orphan",
        order_by="DocumentoComprobatorio.id",
    )

    @property
    def vulnerabilidade_superada(self) -> bool:
        return self.status_vulnerabilidade == StatusVulnerabilidade.SUPERADA


class DocumentoComprobatorio(db.Model):
    __tablename__ = "documento_comprobatorio"
    __table_args__ = (
        Index("ix_documento_comprobatorio_resultado_categoria", "resultado_id", "categoria"),
        CheckConstraint("tamanho >= 0", name="ck_documento_tamanho"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    resultado_id: Mapped[int] = mapped_column(ForeignKey("resultado_cessacao.id"), nullable=False, index=True)
    categoria: Mapped[CategoriaDocumento] = mapped_column(
        SAEnum(CategoriaDocumento, name="categoria_documento"),
        nullable=False,
    )
    nome_arquivo: Mapped[str] = mapped_column(db.String(255), nullable=False)
    caminho_arquivo: Mapped[str] = mapped_column(db.String(500), nullable=False)
    tipo_mime: Mapped[str | None] = mapped_column(db.String(120), nullable=True)
    tamanho: Mapped[int] = mapped_column(nullable=False, default=0)
    hash_arquivo: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    descricao: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")
    observacoes: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")
    validado: Mapped[bool] = mapped_column(nullable=False, default=False)
    data_upload: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    usuario_upload_id: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)

    resultado = relationship("ResultadoCessacao", back_populates="documentos")


def seed_demo_data(session) -> None:
    unidade = Unidade(nome="CRAS Centro", sigla="CRAS-CENTRO")
    session.add(unidade)
    session.flush()

    admin = User(
        email="admin@semtas.local",
        full_name="Coordenacao SEMTAS",
        password_hash=generate_password_hash("admin123"),
    )
    tecnico = User(
        email="tecnico@semtas.local",
        full_name="Tecnica de Referencia",
        password_hash=generate_password_hash("tecnico123"),
    )
    session.add_all([admin, tecnico])
    session.flush()
    session.add_all(
        [
            Membership(user_id=admin.id, unidade_id=unidade.id, role="admin"),
            Membership(user_id=tecnico.id, unidade_id=unidade.id, role="tecnico"),
        ]
    )

    session.add_all(
        [
            TipoBeneficio(codigo="AUXILIO_NATALIDADE", nome="Auxilio Natalidade", periodicidade=Periodicidade.UNICA, max_parcelas=1),
            TipoBeneficio(codigo="AUXILIO_FUNERAL", nome="Auxilio Funeral", periodicidade=Periodicidade.UNICA, max_parcelas=1),
            TipoBeneficio(codigo="ALUGUEL_SOCIAL", nome="Aluguel Social", periodicidade=Periodicidade.RECORRENTE, max_parcelas=6),
            TipoBeneficio(codigo="CESTA_BASICA", nome="Cesta Basica", periodicidade=Periodicidade.RECORRENTE, max_parcelas=12),
        ]
    )
    session.add_all(
        [
            Cidadao(nome="Maria das Dores Silva", cpf="111.444.777-35", nis="12345678901"),
            Cidadao(nome="Jose Ribamar Souza", cpf="222.555.888-46", nis="10987654321"),
            Cidadao(nome="Francisca Lima", cpf="333.666.999-57"),
        ]
    )
    session.flush()
    session.add(
        DeterminacaoJudicial(
            numero_processo="0801234-56.2025.8.20.0001",
            ativo=True,
            documento_path="judicial/0801234-56.2025.8.20.0001.pdf",
            data_decisao=date.today() - timedelta(days=10),
        )
    )
    session.commit()
