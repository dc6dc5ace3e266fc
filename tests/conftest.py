from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import create_app
from app.core.config import Config
from app.core.extensions import db
from app.core.models import (
    CLOSED_CONCESSION_STATUSES,
    Cidadao,
    Concessao,
    Solicitacao,
    StatusConcessao,
    StatusSolicitacao,
    TipoBeneficio,
    Unidade,
    User,
    seed_demo_data,
)

SUPERACAO_NOTES = (
    "Familia conquistou renda propria estavel com emprego formal e nao depende mais do auxilio."
)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config["STORAGE_ROOT"] = str(tmp_path / "storage")
    with app.app_context():
        db.create_all()
        seed_demo_data(db.session)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_admin(client):
    def _login():
        return client.post("/auth/login", json={"email": "admin@semtas.local", "password": "admin123"})

    return _login


@pytest.fixture
def login_tecnico(client):
    def _login():
        return client.post("/auth/login", json={"email": "tecnico@semtas.local", "password": "tecnico123"})

    return _login


@pytest.fixture
def tecnico(app) -> User:
    return User.query.filter_by(email="tecnico@semtas.local").one()


@pytest.fixture
def admin(app) -> User:
    return User.query.filter_by(email="admin@semtas.local").one()


@pytest.fixture
def unidade(app) -> Unidade:
    return Unidade.query.first()


@pytest.fixture
def beneficiario(app) -> Cidadao:
    return Cidadao.query.order_by(Cidadao.id.asc()).first()


@pytest.fixture
def tipo(app):
    def _tipo(codigo: str) -> TipoBeneficio:
        return TipoBeneficio.query.filter_by(codigo=codigo).one()

    return _tipo


@pytest.fixture
def make_concession(app, tecnico, unidade, beneficiario, tipo):
    """Builds an approved request plus its concession directly in the database."""

    def _make(
        status: StatusConcessao = StatusConcessao.CESSADO,
        closed_days_ago: int = 5,
        data_encerramento: date | None = None,
        tipo_codigo: str = "ALUGUEL_SOCIAL",
        cidadao: Cidadao | None = None,
    ) -> Concessao:
        cidadao = cidadao or beneficiario
        tipo_beneficio = tipo(tipo_codigo)
        sequence = Solicitacao.query.count() + 1
        solicitacao = Solicitacao(
            protocolo=f"SOL-TESTE-{sequence:04d}",
            beneficiario_id=cidadao.id,
            tipo_beneficio_id=tipo_beneficio.id,
            unidade_id=unidade.id,
            tecnico_id=tecnico.id,
            status=StatusSolicitacao.APROVADA,
            quantidade_parcelas=1 if not tipo_beneficio.recorrente else 3,
        )
        db.session.add(solicitacao)
        db.session.flush()

        closure = None
        if status in CLOSED_CONCESSION_STATUSES:
            closure = data_encerramento or (date.today() - timedelta(days=closed_days_ago))
        concessao = Concessao(
            solicitacao_id=solicitacao.id,
            beneficiario_id=cidadao.id,
            tipo_beneficio_id=tipo_beneficio.id,
            status=status,
            data_inicio=(closure or date.today()) - timedelta(days=180),
            data_encerramento=closure,
        )
        db.session.add(concessao)
        db.session.commit()
        return concessao

    return _make


@pytest.fixture
def cessation_payload():
    def _payload(concessao_id: int, **overrides) -> dict:
        payload = {
            "concessao_id": concessao_id,
            "motivo_encerramento": "SUPERACAO_VULNERABILIDADE",
            "status_vulnerabilidade": "SUPERADA",
            "justificativa": "Superacao comprovada em visita domiciliar.",
            "avaliacao_vulnerabilidade": "Familia com renda acima do criterio do programa.",
            "observacoes_tecnicas": SUPERACAO_NOTES,
            "acompanhamento_posterior": False,
            "documentos": [
                {
                    "categoria": "COMPROVANTE_RENDA",
                    "nome_arquivo": "contracheque.pdf",
                    "caminho_arquivo": "externo/contracheque.pdf",
                    "tipo_mime": "application/pdf",
                    "tamanho": 2048,
                },
                {
                    "categoria": "FOTOGRAFIA",
                    "nome_arquivo": "fachada.jpg",
                    "caminho_arquivo": "externo/fachada.jpg",
                    "tipo_mime": "image/jpeg",
                    "tamanho": 4096,
                },
            ],
        }
        payload.update(overrides)
        return payload

    return _payload
