# nutricoach_app/decorators.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from functools import wraps
from flask import session, jsonify

def login_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        if not session.get("user"):
            return jsonify(error="Faça login para acessar."), 401
        return view_func(*args, **kwargs)
    return wrapper

def admin_required(view_func):
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        user = session.get("user")
        if not user:
            return jsonify(error="Faça login para acessar."), 401
        if not user.get("is_admin"):
            return jsonify(error="Acesso restrito ao administrador."), 403
        return view_func(*args, **kwargs)
    return wrapper
