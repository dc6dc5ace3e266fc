from __future__ import annotations

from datetime import date, timedelta

import pytest

from app.beneficio.compliance import (
    CESSATION_RULES,
    CessationComplianceValidator,
    CessationInput,
    ComplianceSettings,
    DocumentInput,
)
from app.beneficio.eligibility import EligibilityInput, EligibilityValidator
from app.core.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    WaitingPeriodError,
)
from app.core.extensions import db
from app.core.models import (
    CategoriaDocumento,
    DeterminacaoJudicial,
    MotivoEncerramento,
    ResultadoCessacao,
    Solicitacao,
    StatusConcessao,
    StatusSolicitacao,
    StatusVulnerabilidade,
)
from app.core.utils import add_months

SUPERACAO_NOTES = (
    "Familia conquistou renda propria estavel com emprego formal e nao depende mais do auxilio."
)


def _doc(categoria: str, nome: str = "arquivo.pdf", mime: str = "application/pdf", tamanho: int = 1024) -> DocumentInput:
    return DocumentInput(
        categoria=categoria,
        nome_arquivo=nome,
        caminho_arquivo=f"externo/{nome}",
        tipo_mime=mime,
        tamanho=tamanho,
    )


def _cessation(concessao_id: int, **overrides) -> CessationInput:
    values = {
        "concessao_id": concessao_id,
        "motivo_encerramento": "SUPERACAO_VULNERABILIDADE",
        "status_vulnerabilidade": "SUPERADA",
        "observacoes_tecnicas": SUPERACAO_NOTES,
        "documentos": (
            _doc("COMPROVANTE_RENDA", "renda.pdf"),
            _doc("FOTOGRAFIA", "foto.jpg", "image/jpeg"),
        ),
    }
    values.update(overrides)
    return CessationInput(**values)


def _open_request(beneficiario, tipo_beneficio, unidade, tecnico, status=StatusSolicitacao.ABERTA) -> Solicitacao:
    solicitacao = Solicitacao(
        protocolo=f"SOL-ABERTA-{Solicitacao.query.count() + 1:04d}",
        beneficiario_id=beneficiario.id,
        tipo_beneficio_id=tipo_beneficio.id,
        unidade_id=unidade.id,
        tecnico_id=tecnico.id,
        status=status,
        quantidade_parcelas=1,
    )
    db.session.add(solicitacao)
    db.session.commit()
    return solicitacao


# -- utils -------------------------------------------------------------------


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 2, 29), 12) == date(2025, 2, 28)
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2025, 3, 15), 12) == date(2026, 3, 15)
    assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)


# -- eligibility ---------------------------------------------------------------


def test_single_payment_requires_exactly_one_installment(app, beneficiario, tipo):
    validator = EligibilityValidator()
    natalidade = tipo("AUXILIO_NATALIDADE")

    verdict = validator.evaluate(EligibilityInput(beneficiario.id, natalidade.id, 2))
    assert not verdict.admitted
    assert verdict.violations[0].error is ValidationError

    assert validator.evaluate(EligibilityInput(beneficiario.id, natalidade.id, 1)).admitted


@pytest.mark.parametrize("parcelas,admitted", [(0, False), (1, True), (6, True), (7, False)])
def test_recurring_installments_bounded_by_benefit_maximum(app, beneficiario, tipo, parcelas, admitted):
    aluguel = tipo("ALUGUEL_SOCIAL")
    verdict = EligibilityValidator().evaluate(EligibilityInput(beneficiario.id, aluguel.id, parcelas))
    assert verdict.admitted is admitted
    if not admitted:
        with pytest.raises(ValidationError) as exc:
            verdict.raise_first()
        assert exc.value.details["permitido"] == [1, 6]


def test_unknown_benefit_type_is_not_found(app, beneficiario):
    with pytest.raises(NotFoundError):
        EligibilityValidator().ensure(EligibilityInput(beneficiario.id, 9999, 1))


def test_inactive_benefit_type_is_rejected(app, beneficiario, tipo):
    funeral = tipo("AUXILIO_FUNERAL")
    funeral.ativo = False
    db.session.commit()
    with pytest.raises(ValidationError):
        EligibilityValidator().ensure(EligibilityInput(beneficiario.id, funeral.id, 1))


def test_duplicate_open_request_conflicts(app, beneficiario, tipo, unidade, tecnico):
    natalidade = tipo("AUXILIO_NATALIDADE")
    existing = _open_request(beneficiario, natalidade, unidade, tecnico, StatusSolicitacao.EM_ANALISE)

    with pytest.raises(ConflictError) as exc:
        EligibilityValidator().ensure(EligibilityInput(beneficiario.id, natalidade.id, 1))
    assert exc.value.details["solicitacao_id"] == existing.id

    # the request under edit does not conflict with itself
    data = EligibilityInput(beneficiario.id, natalidade.id, 1, ignorar_solicitacao_id=existing.id)
    assert EligibilityValidator().evaluate(data).admitted


def test_terminal_requests_do_not_conflict(app, beneficiario, tipo, unidade, tecnico):
    natalidade = tipo("AUXILIO_NATALIDADE")
    _open_request(beneficiario, natalidade, unidade, tecnico, StatusSolicitacao.INDEFERIDA)
    _open_request(beneficiario, natalidade, unidade, tecnico, StatusSolicitacao.CANCELADA)
    assert EligibilityValidator().evaluate(EligibilityInput(beneficiario.id, natalidade.id, 1)).admitted


def test_duplicate_non_terminal_concession_conflicts(app, beneficiario, tipo, make_concession):
    concessao = make_concession(status=StatusConcessao.SUSPENSO, tipo_codigo="CESTA_BASICA")
    cesta = tipo("CESTA_BASICA")

    verdict = EligibilityValidator().evaluate(EligibilityInput(beneficiario.id, cesta.id, 3))
    assert [v.error for v in verdict.violations] == [ConflictError]
    assert verdict.violations[0].details["concessao_id"] == concessao.id


def test_waiting_period_after_two_closed_concessions(app, beneficiario, tipo, make_concession):
    aluguel = tipo("ALUGUEL_SOCIAL")
    make_concession(status=StatusConcessao.ENCERRADO, data_encerramento=date(2025, 6, 10))
    make_concession(status=StatusConcessao.CESSADO, data_encerramento=date(2026, 1, 31))
    validator = EligibilityValidator()

    assert validator.waiting_period_end(beneficiario.id, aluguel.id) == date(2027, 1, 31)
    with pytest.raises(WaitingPeriodError) as exc:
        validator.ensure(EligibilityInput(beneficiario.id, aluguel.id, 3, data_referencia=date(2026, 12, 1)))
    assert exc.value.eligible_date == date(2027, 1, 31)
    assert exc.value.details == {"eligible_date": "2027-01-31"}

    on_eligible_date = EligibilityInput(beneficiario.id, aluguel.id, 3, data_referencia=date(2027, 1, 31))
    assert validator.evaluate(on_eligible_date).admitted


def test_waiting_period_needs_two_closures(app, beneficiario, tipo, make_concession):
    aluguel = tipo("ALUGUEL_SOCIAL")
    make_concession(status=StatusConcessao.CESSADO, data_encerramento=date(2026, 1, 31))

    assert EligibilityValidator().waiting_period_end(beneficiario.id, aluguel.id) is None
    data = EligibilityInput(beneficiario.id, aluguel.id, 3, data_referencia=date(2026, 2, 1))
    assert EligibilityValidator().evaluate(data).admitted


def test_waiting_period_only_applies_to_recurring_types(app, beneficiario, tipo, make_concession):
    funeral = tipo("AUXILIO_FUNERAL")
    make_concession(status=StatusConcessao.ENCERRADO, data_encerramento=date(2026, 1, 10), tipo_codigo="AUXILIO_FUNERAL")
    make_concession(status=StatusConcessao.ENCERRADO, data_encerramento=date(2026, 2, 10), tipo_codigo="AUXILIO_FUNERAL")

    data = EligibilityInput(beneficiario.id, funeral.id, 1, data_referencia=date(2026, 3, 1))
    assert EligibilityValidator().evaluate(data).admitted


def test_judicial_override_skips_duplicate_and_waiting_checks(app, beneficiario, tipo, unidade, tecnico, make_concession):
    aluguel = tipo("ALUGUEL_SOCIAL")
    make_concession(status=StatusConcessao.ENCERRADO, data_encerramento=date(2026, 6, 10))
    make_concession(status=StatusConcessao.CESSADO, data_encerramento=date(2026, 9, 1))
    make_concession(status=StatusConcessao.ATIVO)
    _open_request(beneficiario, aluguel, unidade, tecnico)
    determinacao = DeterminacaoJudicial.query.first()

    data = EligibilityInput(
        beneficiario.id,
        aluguel.id,
        24,
        determinacao_judicial_flag=True,
        determinacao_judicial_id=determinacao.id,
        data_referencia=date(2026, 10, 1),
    )
    assert EligibilityValidator().evaluate(data).admitted


def test_judicial_override_requires_valid_determination(app, beneficiario, tipo):
    aluguel = tipo("ALUGUEL_SOCIAL")
    validator = EligibilityValidator()

    with pytest.raises(ValidationError):
        validator.ensure(EligibilityInput(beneficiario.id, aluguel.id, 1, determinacao_judicial_flag=True))
    with pytest.raises(NotFoundError):
        validator.ensure(
            EligibilityInput(beneficiario.id, aluguel.id, 1, determinacao_judicial_flag=True, determinacao_judicial_id=999)
        )

    sem_documento = DeterminacaoJudicial(numero_processo="0800001-00.2026.8.20.0001", ativo=True)
    inativa = DeterminacaoJudicial(
        numero_processo="0800002-00.2026.8.20.0001", ativo=False, documento_path="judicial/x.pdf"
    )
    db.session.add_all([sem_documento, inativa])
    db.session.commit()
    for determinacao in (sem_documento, inativa):
        with pytest.raises(ValidationError):
            validator.ensure(
                EligibilityInput(
                    beneficiario.id,
                    aluguel.id,
                    1,
                    determinacao_judicial_flag=True,
                    determinacao_judicial_id=determinacao.id,
                )
            )


def test_eligibility_verdict_is_idempotent(app, beneficiario, tipo, make_concession):
    make_concession(status=StatusConcessao.ATIVO)
    aluguel = tipo("ALUGUEL_SOCIAL")
    data = EligibilityInput(beneficiario.id, aluguel.id, 9)
    validator = EligibilityValidator()

    first = validator.evaluate(data)
    second = validator.evaluate(data)
    assert first == second
    assert [v.error for v in first.violations] == [ConflictError, ValidationError]


# -- cessation compliance --------------------------------------------------------


def test_rule_table_is_immutable():
    with pytest.raises(TypeError):
        CESSATION_RULES[MotivoEncerramento.OUTROS] = CESSATION_RULES[MotivoEncerramento.TERMINO_PRAZO]
    assert set(CESSATION_RULES) == set(MotivoEncerramento)


def test_scenario_a_vulnerability_overcome_with_required_documents(app, make_concession):
    concessao = make_concession()
    verdict = CessationComplianceValidator().evaluate(_cessation(concessao.id))
    assert verdict.admitted
    assert verdict.warnings == ()


def test_scenario_b_missing_documents_listed_exactly(app, make_concession):
    concessao = make_concession()
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(_cessation(concessao.id, documentos=()))
    assert exc.value.details["missing"] == ["COMPROVANTE_RENDA", "FOTOGRAFIA"]


def test_scenario_c_incompatible_reason_and_status(app, make_concession):
    concessao = make_concession()
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(_cessation(concessao.id, status_vulnerabilidade="AGRAVADA"))
    assert "incompativel" in exc.value.message.lower()
    assert "SUPERACAO_VULNERABILIDADE" in exc.value.message
    assert "AGRAVADA" in exc.value.message


def test_scenario_d_registration_window_expired(app, make_concession):
    concessao = make_concession(closed_days_ago=35)
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(_cessation(concessao.id))
    assert "prazo" in exc.value.message.lower()
    assert exc.value.details["dias_decorridos"] == 35


def test_deadline_warning_is_advisory(app, make_concession):
    concessao = make_concession(closed_days_ago=27)
    warnings = CessationComplianceValidator().ensure(_cessation(concessao.id))
    assert len(warnings) == 1
    assert "3 dias" in warnings[0]


def test_income_declaration_does_not_count_as_income_proof(app, make_concession):
    concessao = make_concession()
    data = _cessation(
        concessao.id,
        documentos=(
            _doc("DECLARACAO_TERCEIROS", "declaracao.pdf"),
            _doc("FOTOGRAFIA", "foto.jpg", "image/jpeg"),
        ),
    )
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(data)
    assert exc.value.details["missing"] == ["COMPROVANTE_RENDA"]


REASON_CASES = [
    (
        "SUPERACAO_VULNERABILIDADE",
        "SUPERADA",
        SUPERACAO_NOTES,
        [("COMPROVANTE_RENDA", "application/pdf"), ("FOTOGRAFIA", "image/jpeg")],
        ["COMPROVANTE_RENDA", "FOTOGRAFIA"],
    ),
    (
        "MELHORIA_SOCIOECONOMICA",
        "EM_SUPERACAO",
        "Renda familiar aumentou apos insercao no mercado.",
        [("COMPROVANTE_RENDA", "image/png")],
        ["COMPROVANTE_RENDA"],
    ),
    (
        "MUDANCA_MUNICIPIO",
        "MANTIDA",
        "Familia mudou-se para outro municipio do estado.",
        [("COMPROVANTE_RESIDENCIA", "application/pdf"), ("FOTOGRAFIA", "image/jpeg")],
        ["COMPROVANTE_RESIDENCIA", "FOTOGRAFIA"],
    ),
    (
        "OBITO_BENEFICIARIO",
        "MANTIDA",
        "Obito informado pela familia e confirmado em certidao.",
        [("LAUDO_MEDICO", "application/pdf")],
        ["DOCUMENTO_PESSOAL", "LAUDO_MEDICO"],
    ),
    (
        "DESCUMPRIMENTO_CONDICIONALIDADES",
        "MANTIDA",
        "Foram realizadas tres visitas domiciliares e tentativas de contato telefonico sem retorno.",
        [("RELATORIO_TECNICO", "application/pdf"), ("FOTOGRAFIA", "image/jpeg")],
        ["RELATORIO_TECNICO", "FOTOGRAFIA"],
    ),
]


@pytest.mark.parametrize("motivo,status,notes,documents,missing", REASON_CASES)
def test_required_documents_per_reason(app, make_concession, motivo, status, notes, documents, missing):
    concessao = make_concession()
    validator = CessationComplianceValidator()
    docs = tuple(_doc(categoria, f"doc{index}", mime) for index, (categoria, mime) in enumerate(documents))
    base = {"motivo_encerramento": motivo, "status_vulnerabilidade": status, "observacoes_tecnicas": notes}

    assert validator.evaluate(_cessation(concessao.id, documentos=docs, **base)).admitted

    with pytest.raises(ValidationError) as exc:
        validator.ensure(_cessation(concessao.id, documentos=(), **base))
    assert exc.value.details["missing"] == missing


def test_death_accepts_either_personal_document_or_medical_report(app, make_concession):
    concessao = make_concession()
    validator = CessationComplianceValidator()
    base = {
        "motivo_encerramento": "OBITO_BENEFICIARIO",
        "status_vulnerabilidade": "MANTIDA",
        "observacoes_tecnicas": "Obito comunicado pela filha da beneficiaria.",
    }
    assert validator.evaluate(_cessation(concessao.id, documentos=(_doc("DOCUMENTO_PESSOAL"),), **base)).admitted

    with pytest.raises(ValidationError) as exc:
        validator.ensure(_cessation(concessao.id, documentos=(_doc("FOTOGRAFIA", "f.jpg", "image/jpeg"),), **base))
    assert exc.value.details["missing"] == ["DOCUMENTO_PESSOAL", "LAUDO_MEDICO"]
    assert exc.value.details["any_of"] is True


def test_reasons_without_document_requirements(app, make_concession):
    concessao = make_concession()
    data = _cessation(
        concessao.id,
        motivo_encerramento="TERMINO_PRAZO",
        status_vulnerabilidade="MANTIDA",
        observacoes_tecnicas="Prazo da concessao encerrado.",
        documentos=(),
    )
    assert CessationComplianceValidator().evaluate(data).admitted


def test_notes_are_mandatory_with_minimum_length(app, make_concession):
    concessao = make_concession()
    data = _cessation(
        concessao.id,
        motivo_encerramento="TERMINO_PRAZO",
        status_vulnerabilidade="MANTIDA",
        observacoes_tecnicas="curto",
        documentos=(),
    )
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(data)
    assert exc.value.details["minimo"] == 10

    short_superacao = _cessation(concessao.id, observacoes_tecnicas="Familia superou a situacao.")
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(short_superacao)
    assert exc.value.details["minimo"] == 50


def test_non_compliance_notes_must_describe_follow_up_attempts(app, make_concession):
    concessao = make_concession()
    data = _cessation(
        concessao.id,
        motivo_encerramento="DESCUMPRIMENTO_CONDICIONALIDADES",
        status_vulnerabilidade="MANTIDA",
        observacoes_tecnicas="Familia nao cumpriu as condicionalidades do programa.",
        documentos=(_doc("RELATORIO_TECNICO"), _doc("FOTOGRAFIA", "f.jpg", "image/jpeg")),
    )
    with pytest.raises(ValidationError):
        CessationComplianceValidator().ensure(data)


@pytest.mark.parametrize(
    "status,notes,admitted",
    [
        ("REQUER_REAVALIACAO", "Situacao exige nova REAVALIAÇÃO em seis meses.", True),
        ("REQUER_REAVALIACAO", "Situacao exige novo estudo social em seis meses.", False),
        ("AGRAVADA", "Houve agravamento por perda de moradia.", True),
        ("AGRAVADA", "Houve piora por perda de moradia da familia.", False),
    ],
)
def test_status_keywords_in_notes(app, make_concession, status, notes, admitted):
    concessao = make_concession()
    data = _cessation(
        concessao.id,
        motivo_encerramento="TRANSFERENCIA_PROGRAMA",
        status_vulnerabilidade=status,
        observacoes_tecnicas=notes,
        documentos=(),
    )
    assert CessationComplianceValidator().evaluate(data).admitted is admitted


def test_follow_up_flag_requires_details(app, make_concession):
    concessao = make_concession()
    data = _cessation(concessao.id, acompanhamento_posterior=True, detalhes_acompanhamento=None)
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(data)
    assert exc.value.details["campo"] == "detalhes_acompanhamento"

    with_details = _cessation(concessao.id, acompanhamento_posterior=True, detalhes_acompanhamento="Visita em 90 dias")
    assert CessationComplianceValidator().evaluate(with_details).admitted


def test_per_document_checks(app, make_concession):
    concessao = make_concession()
    validator = CessationComplianceValidator(ComplianceSettings(max_file_size=1000))

    oversized = _cessation(
        concessao.id,
        documentos=(_doc("COMPROVANTE_RENDA", "renda.pdf", tamanho=1001), _doc("FOTOGRAFIA", "f.jpg", "image/jpeg", 10)),
    )
    assert not validator.evaluate(oversized).admitted

    wrong_mime = _cessation(
        concessao.id,
        documentos=(_doc("COMPROVANTE_RENDA", "renda.pdf", tamanho=10), _doc("FOTOGRAFIA", "f.pdf", "application/pdf", 10)),
    )
    with pytest.raises(ValidationError) as exc:
        validator.ensure(wrong_mime)
    assert exc.value.details["categoria"] == "FOTOGRAFIA"

    unknown_category = _cessation(
        concessao.id,
        documentos=(
            _doc("COMPROVANTE_RENDA", "renda.pdf", tamanho=10),
            _doc("FOTOGRAFIA", "f.jpg", "image/jpeg", 10),
            _doc("EXTRATO", "extrato.pdf", tamanho=10),
        ),
    )
    assert not validator.evaluate(unknown_category).admitted

    missing_path = _cessation(
        concessao.id,
        documentos=(
            _doc("COMPROVANTE_RENDA", "renda.pdf", tamanho=10),
            DocumentInput(categoria="FOTOGRAFIA", nome_arquivo="f.jpg", caminho_arquivo="", tipo_mime="image/jpeg"),
        ),
    )
    assert not validator.evaluate(missing_path).admitted


def test_stored_document_paths_and_sizes_are_checked(app, make_concession):
    concessao = make_concession()
    validator = CessationComplianceValidator()

    def first_violation(doc: DocumentInput):
        documentos = (_doc("COMPROVANTE_RENDA", "renda.pdf"), _doc("FOTOGRAFIA", "foto.jpg", "image/jpeg"), doc)
        verdict = validator.evaluate(_cessation(concessao.id, documentos=documentos))
        assert not verdict.admitted
        assert verdict.violations[0].error is ValidationError
        return verdict.violations[0]

    managed = DocumentInput(
        categoria="LAUDO_MEDICO",
        nome_arquivo="laudo.pdf",
        caminho_arquivo="resultado_cessacao/2026/01/01/7/documentacao_tecnica/laudo.pdf",
        tipo_mime="application/pdf",
        tamanho=10,
    )
    assert "reservado" in first_violation(managed).message

    for escaping in ("../segredo.pdf", "/etc/passwd", "externo/../../segredo.pdf"):
        doc = DocumentInput(categoria="LAUDO_MEDICO", nome_arquivo="laudo.pdf", caminho_arquivo=escaping, tamanho=10)
        assert first_violation(doc).details["caminho_arquivo"] == escaping

    negative = first_violation(_doc("LAUDO_MEDICO", "laudo.pdf", tamanho=-5))
    assert negative.details["tamanho"] == -5

    numeric_mime = DocumentInput(
        categoria="LAUDO_MEDICO", nome_arquivo="laudo.pdf", caminho_arquivo="externo/laudo.pdf", tipo_mime=123
    )
    assert first_violation(numeric_mime).details["tipo_mime"] == "123"
    numeric_category = DocumentInput(categoria=5, nome_arquivo="x.pdf", caminho_arquivo="externo/x.pdf")
    assert first_violation(numeric_category).details == {"categoria": 5}


def test_upload_bundle_limits(app, make_concession):
    concessao = make_concession()
    uploads = tuple(
        DocumentInput(categoria="PROVA_SOCIAL", nome_arquivo=f"p{i}.jpg", tipo_mime="image/jpeg", tamanho=10, bundle="prova_social")
        for i in range(6)
    )
    data = _cessation(
        concessao.id,
        motivo_encerramento="TERMINO_PRAZO",
        status_vulnerabilidade="MANTIDA",
        observacoes_tecnicas="Prazo da concessao encerrado.",
        documentos=uploads,
    )
    with pytest.raises(ValidationError) as exc:
        CessationComplianceValidator().ensure(data)
    assert exc.value.details == {"prova_social": 6}


def test_precondition_failures(app, make_concession, tecnico):
    validator = CessationComplianceValidator()
    with pytest.raises(NotFoundError):
        validator.ensure(_cessation(9999))

    ativa = make_concession(status=StatusConcessao.ATIVO)
    with pytest.raises(ConflictError):
        validator.ensure(_cessation(ativa.id))

    cessada = make_concession()
    db.session.add(
        ResultadoCessacao(
            concessao_id=cessada.id,
            motivo_encerramento=MotivoEncerramento.TERMINO_PRAZO,
            status_vulnerabilidade=StatusVulnerabilidade.MANTIDA,
            observacoes_tecnicas="Registrado anteriormente.",
            tecnico_id=tecnico.id,
        )
    )
    db.session.commit()
    with pytest.raises(ConflictError):
        validator.ensure(_cessation(cessada.id))


def test_compliance_verdict_is_idempotent_and_ordered(app, make_concession):
    concessao = make_concession(closed_days_ago=40)
    data = _cessation(concessao.id, status_vulnerabilidade="MANTIDA", documentos=(), observacoes_tecnicas="curta")
    validator = CessationComplianceValidator()

    first = validator.evaluate(data)
    assert first == validator.evaluate(data)
    messages = [violation.message.lower() for violation in first.violations]
    assert "incompativel" in messages[0]
    assert "observacoes tecnicas" in messages[1]
    assert "documentos obrigatorios" in messages[2]
    assert "prazo" in messages[-1]


def test_closure_date_unknown_skips_deadline(app, make_concession):
    concessao = make_concession()
    concessao.data_encerramento = None
    db.session.commit()
    data = _cessation(concessao.id)
    assert CessationComplianceValidator().evaluate(data, today=date.today() + timedelta(days=400)).admitted


def test_category_enumeration_is_closed():
    assert len(CategoriaDocumento) == 13
    assert CategoriaDocumento.COMPROVANTE_RENDA != CategoriaDocumento.DECLARACAO_TERCEIROS
