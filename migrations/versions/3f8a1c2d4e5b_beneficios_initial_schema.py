"""benefit requests, concessions and cessation results

Revision ID: 3f8a1c2d4e5b
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f8a1c2d4e5b"
down_revision = None
branch_labels = None
depends_on = None


STATUS_SOLICITACAO = ("RASCUNHO", "ABERTA", "PENDENTE", "EM_ANALISE", "APROVADA", "INDEFERIDA", "CANCELADA")
STATUS_CONCESSAO = ("PENDENTE", "ATIVO", "SUSPENSO", "BLOQUEADO", "CESSADO", "ENCERRADO")
MOTIVO_ENCERRAMENTO = (
    "SUPERACAO_VULNERABILIDADE",
    "MELHORIA_SOCIOECONOMICA",
    "MUDANCA_MUNICIPIO",
    "OBITO_BENEFICIARIO",
    "DESCUMPRIMENTO_CONDICIONALIDADES",
    "AGRAVAMENTO_SITUACAO",
    "TERMINO_PRAZO",
    "SOLICITACAO_BENEFICIARIO",
    "TRANSFERENCIA_PROGRAMA",
    "OUTROS",
)
STATUS_VULNERABILIDADE = (
    "SUPERADA",
    "EM_SUPERACAO",
    "TEMPORARIAMENTE_RESOLVIDA",
    "MANTIDA",
    "AGRAVADA",
    "REQUER_REAVALIACAO",
)
CATEGORIA_DOCUMENTO = (
    "FOTOGRAFIA",
    "DOCUMENTO_PESSOAL",
    "COMPROVANTE_RENDA",
    "COMPROVANTE_RESIDENCIA",
    "RELATORIO_TECNICO",
    "DECLARACAO_TERCEIROS",
    "LAUDO_MEDICO",
    "COMPROVANTE_MATRICULA",
    "DOCUMENTO_PROGRAMA_SOCIAL",
    "ATA_REUNIAO",
    "PROVA_SOCIAL",
    "DOCUMENTACAO_TECNICA",
    "OUTROS",
)


def upgrade():
    op.create_table(
        "unidade",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nome", sa.String(length=120), nullable=False, unique=True),
        sa.Column("sigla", sa.String(length=30), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "membership",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=False),
        sa.Column("unidade_id", sa.Integer(), sa.ForeignKey("unidade.id"), nullable=False),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.UniqueConstraint("user_id", "unidade_id", name="uq_membership_user_unidade"),
    )
    op.create_table(
        "cidadao",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nome", sa.String(length=160), nullable=False),
        sa.Column("cpf", sa.String(length=14), nullable=False, unique=True),
        sa.Column("nis", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "tipo_beneficio",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("codigo", sa.String(length=40), nullable=False, unique=True),
        sa.Column("nome", sa.String(length=120), nullable=False),
        sa.Column("periodicidade", sa.Enum("UNICA", "RECORRENTE", name="periodicidade"), nullable=False),
        sa.Column("max_parcelas", sa.Integer(), nullable=False),
        sa.Column("ativo", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "determinacao_judicial",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("numero_processo", sa.String(length=40), nullable=False, unique=True),
        sa.Column("cidadao_id", sa.Integer(), sa.ForeignKey("cidadao.id"), nullable=True),
        sa.Column("ativo", sa.Boolean(), nullable=False),
        sa.Column("documento_path", sa.String(length=255), nullable=True),
        sa.Column("data_decisao", sa.Date(), nullable=True),
    )
    op.create_table(
        "solicitacao",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("protocolo", sa.String(length=30), nullable=False, unique=True),
        sa.Column("beneficiario_id", sa.Integer(), sa.ForeignKey("cidadao.id"), nullable=False),
        sa.Column("solicitante_id", sa.Integer(), sa.ForeignKey("cidadao.id"), nullable=True),
        sa.Column("tipo_beneficio_id", sa.Integer(), sa.ForeignKey("tipo_beneficio.id"), nullable=False),
        sa.Column("unidade_id", sa.Integer(), sa.ForeignKey("unidade.id"), nullable=False),
        sa.Column("tecnico_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=False),
        sa.Column("data_abertura", sa.DateTime(), nullable=False),
        sa.Column("status", sa.Enum(*STATUS_SOLICITACAO, name="status_solicitacao"), nullable=False),
        sa.Column("sub_status", sa.String(length=40), nullable=True),
        sa.Column("aprovador_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=True),
        sa.Column("data_aprovacao", sa.DateTime(), nullable=True),
        sa.Column("parecer", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column("liberador_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=True),
        sa.Column("data_liberacao", sa.DateTime(), nullable=True),
        sa.Column("determinacao_judicial_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "determinacao_judicial_id",
            sa.Integer(),
            sa.ForeignKey("determinacao_judicial.id"),
            nullable=True,
        ),
        sa.Column("quantidade_parcelas", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("prioridade", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("tipo", sa.Enum("ORIGINAL", "RENOVACAO", name="tipo_solicitacao"), nullable=False),
        sa.Column("solicitacao_original_id", sa.Integer(), sa.ForeignKey("solicitacao.id"), nullable=True),
        sa.Column("solicitacao_renovada_id", sa.Integer(), sa.ForeignKey("solicitacao.id"), nullable=True),
        sa.Column("dados_beneficio", sa.JSON(), nullable=False),
        sa.Column("observacoes", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column("motivo_indeferimento", sa.String(length=500), nullable=True),
        sa.Column("prazo_analise", sa.Date(), nullable=True),
        sa.Column("prazo_documentos", sa.Date(), nullable=True),
        sa.Column("prazo_processamento", sa.Date(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("quantidade_parcelas >= 1", name="ck_solicitacao_parcelas"),
    )
    op.create_index(
        "ix_solicitacao_beneficiario_tipo_status",
        "solicitacao",
        ["beneficiario_id", "tipo_beneficio_id", "status"],
    )
    op.create_index(
        "ix_solicitacao_unidade_status_abertura",
        "solicitacao",
        ["unidade_id", "status", "data_abertura"],
    )
    op.create_table(
        "concessao",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("solicitacao_id", sa.Integer(), sa.ForeignKey("solicitacao.id"), nullable=False, unique=True),
        sa.Column("beneficiario_id", sa.Integer(), sa.ForeignKey("cidadao.id"), nullable=False),
        sa.Column("tipo_beneficio_id", sa.Integer(), sa.ForeignKey("tipo_beneficio.id"), nullable=False),
        sa.Column("status", sa.Enum(*STATUS_CONCESSAO, name="status_concessao"), nullable=False),
        sa.Column("data_inicio", sa.Date(), nullable=False),
        sa.Column("data_fim_prevista", sa.Date(), nullable=True),
        sa.Column("data_encerramento", sa.Date(), nullable=True),
        sa.Column("ordem_prioridade", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("determinacao_judicial_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("motivo_status", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("data_revisao_suspensao", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "data_encerramento IS NULL OR data_encerramento >= data_inicio",
            name="ck_concessao_dates",
        ),
    )
    op.create_index(
        "ix_concessao_beneficiario_tipo_status",
        "concessao",
        ["beneficiario_id", "tipo_beneficio_id", "status"],
    )
    op.create_table(
        "historico_concessao",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("concessao_id", sa.Integer(), sa.ForeignKey("concessao.id"), nullable=False),
        sa.Column("status_anterior", sa.String(length=20), nullable=True),
        sa.Column("status_novo", sa.String(length=20), nullable=False),
        sa.Column("motivo", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("event_at", sa.DateTime(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=True),
    )
    op.create_index("ix_historico_concessao_at", "historico_concessao", ["concessao_id", "event_at"])
    op.create_table(
        "resultado_cessacao",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("concessao_id", sa.Integer(), sa.ForeignKey("concessao.id"), nullable=False, unique=True),
        sa.Column("motivo_encerramento", sa.Enum(*MOTIVO_ENCERRAMENTO, name="motivo_encerramento"), nullable=False),
        sa.Column("justificativa", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column(
            "status_vulnerabilidade",
            sa.Enum(*STATUS_VULNERABILIDADE, name="status_vulnerabilidade"),
            nullable=False,
        ),
        sa.Column("avaliacao_vulnerabilidade", sa.String(length=1000), nullable=False, server_default=""),
        sa.Column("observacoes_tecnicas", sa.String(length=2000), nullable=False),
        sa.Column("acompanhamento_posterior", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("detalhes_acompanhamento", sa.String(length=500), nullable=True),
        sa.Column("recomendacoes", sa.String(length=500), nullable=True),
        sa.Column("tecnico_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=False),
        sa.Column("data_registro", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_resultado_cessacao_motivo_registro",
        "resultado_cessacao",
        ["motivo_encerramento", "data_registro"],
    )
    op.create_index(
        "ix_resultado_cessacao_tecnico_registro",
        "resultado_cessacao",
        ["tecnico_id", "data_registro"],
    )
    op.create_table(
        "documento_comprobatorio",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resultado_id", sa.Integer(), sa.ForeignKey("resultado_cessacao.id"), nullable=False),
        sa.Column("categoria", sa.Enum(*CATEGORIA_DOCUMENTO, name="categoria_documento"), nullable=False),
        sa.Column("nome_arquivo", sa.String(length=255), nullable=False),
        sa.Column("caminho_arquivo", sa.String(length=500), nullable=False),
        sa.Column("tipo_mime", sa.String(length=120), nullable=True),
        sa.Column("tamanho", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hash_arquivo", sa.String(length=64), nullable=True),
        sa.Column("descricao", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("observacoes", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("validado", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("data_upload", sa.DateTime(), nullable=False),
        sa.Column("usuario_upload_id", sa.Integer(), sa.ForeignKey("user_account.id"), nullable=True),
        sa.CheckConstraint("tamanho >= 0", name="ck_documento_tamanho"),
    )
    op.create_index(
        "ix_documento_comprobatorio_resultado_id",
        "documento_comprobatorio",
        ["resultado_id"],
    )
    op.create_index(
        "ix_documento_comprobatorio_resultado_categoria",
        "documento_comprobatorio",
        ["resultado_id", "categoria"],
    )


def downgrade():
    op.drop_index("ix_documento_comprobatorio_resultado_categoria", table_name="documento_comprobatorio")
    op.drop_index("ix_documento_comprobatorio_resultado_id", table_name="documento_comprobatorio")
    op.drop_table("documento_comprobatorio")
    op.drop_index("ix_resultado_cessacao_tecnico_registro", table_name="resultado_cessacao")
    op.drop_index("ix_resultado_cessacao_motivo_registro", table_name="resultado_cessacao")
    op.drop_table("resultado_cessacao")
    op.drop_index("ix_historico_concessao_at", table_name="historico_concessao")
    op.drop_table("historico_concessao")
    op.drop_index("ix_concessao_beneficiario_tipo_status", table_name="concessao")
    op.drop_table("concessao")
    op.drop_index("ix_solicitacao_unidade_status_abertura", table_name="solicitacao")
    op.drop_index("ix_solicitacao_beneficiario_tipo_status", table_name="solicitacao")
    op.drop_table("solicitacao")
    op.drop_table("determinacao_judicial")
    op.drop_table("tipo_beneficio")
    op.drop_table("cidadao")
    op.drop_table("membership")
    op.drop_table("user_account")
    op.drop_table("unidade")
