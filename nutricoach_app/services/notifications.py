# nutricoach_app/services/notifications.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import requests
from flask import current_app, render_template

RESEND_URL = "https://api.resend.com/emails"

TEMPLATES = {
    "welcome": ("Bem-vindo! Suas credenciais de acesso", "emails/welcome.html"),
    "renewal": ("Plano renovado com sucesso!", "emails/renewal.html"),
    "expiring": ("Seu plano está expirando", "emails/expiring.html"),
}


def send(type: str, to: str, data: dict) -> bool:
    """Envia um e-mail transacional. Nunca levanta: falhas são só registradas.

    ``data``: name, email, planName, planEndDate e, no welcome, password.
    """
    if type not in TEMPLATES:
        current_app.logger.error("Tipo de e-mail inválido: %s", type)
        return False
    api_key = current_app.config.get("RESEND_API_KEY")
    if not api_key:
        current_app.logger.warning("RESEND_API_KEY não configurada; e-mail %s para %s não enviado", type, to)
        return False

    subject, template = TEMPLATES[type]
    html = render_template(template, app_url=current_app.config.get("APP_URL", ""), **data)
    try:
        resp = requests.post(
            RESEND_URL,
            json={"from": current_app.config.get("MAIL_FROM"), "to": [to], "subject": subject, "html": html},
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            timeout=current_app.config.get("GATEWAY_TIMEOUT_SECONDS", 20),
        )
    except requests.RequestException as e:
        current_app.logger.error("Falha ao enviar e-mail %s para %s: %s", type, to, e)
        return False
    if resp.status_code >= 400:
        current_app.logger.error("Resend recusou e-mail %s para %s (HTTP %s)", type, to, resp.status_code)
        return False
    current_app.logger.info("E-mail %s enviado para %s", type, to)
    return True
