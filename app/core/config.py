from __future__ import annotations

import os


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///beneficios.db",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    STORAGE_ROOT = os.getenv("STORAGE_ROOT", "")

    # Carencia / parcelas
    ELIGIBILITY_WAITING_PERIOD_MONTHS = int(os.getenv("ELIGIBILITY_WAITING_PERIOD_MONTHS", "12"))
    ELIGIBILITY_CLOSED_CONCESSIONS_THRESHOLD = int(os.getenv("ELIGIBILITY_CLOSED_CONCESSIONS_THRESHOLD", "2"))
    ELIGIBILITY_DEFAULT_MAX_INSTALLMENTS = int(os.getenv("ELIGIBILITY_DEFAULT_MAX_INSTALLMENTS", "12"))

    # Prazos SLA da solicitacao (dias)
    REQUEST_SLA_ANALYSIS_DAYS = int(os.getenv("REQUEST_SLA_ANALYSIS_DAYS", "15"))
    REQUEST_SLA_DOCUMENTS_DAYS = int(os.getenv("REQUEST_SLA_DOCUMENTS_DAYS", "10"))
    REQUEST_SLA_PROCESSING_DAYS = int(os.getenv("REQUEST_SLA_PROCESSING_DAYS", "5"))

    # Registro de resultado de cessacao
    CESSATION_DEADLINE_DAYS = int(os.getenv("CESSATION_DEADLINE_DAYS", "30"))
    CESSATION_WARNING_DAYS = int(os.getenv("CESSATION_WARNING_DAYS", "25"))
    CESSATION_MAX_FILE_SIZE = int(os.getenv("CESSATION_MAX_FILE_SIZE", str(10 * 1024 * 1024)))
    CESSATION_MAX_SOCIAL_PROOF_FILES = int(os.getenv("CESSATION_MAX_SOCIAL_PROOF_FILES", "5"))
    CESSATION_MAX_TECHNICAL_FILES = int(os.getenv("CESSATION_MAX_TECHNICAL_FILES", "10"))
    CESSATION_MAX_TOTAL_FILES = int(os.getenv("CESSATION_MAX_TOTAL_FILES", "15"))
    CESSATION_LIST_MAX_RANGE_DAYS = int(os.getenv("CESSATION_LIST_MAX_RANGE_DAYS", "365"))

    MAX_CONTENT_LENGTH = 16 * 10 * 1024 * 1024
