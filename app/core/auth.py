from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from app.core.models import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/login")
def login_post():
    payload = request.get_json(silent=True) or request.form
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    user = User.query.filter_by(email=email).first()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "Credenciais invalidas", "details": {}}), 401
    login_user(user)
    return jsonify({"id": user.id, "email": user.email, "nome": user.full_name})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify({"id": current_user.id, "email": current_user.email, "nome": current_user.full_name})


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return "", 204
