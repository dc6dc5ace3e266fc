from flask import Blueprint

beneficio_bp = Blueprint("beneficio", __name__, url_prefix="/beneficios")

from app.beneficio import routes  # noqa: E402,F401
