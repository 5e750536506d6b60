# nutricoach_app/blueprints/webhooks.py
from __future__ import annotations
from flask import Blueprint, request, current_app

from ..errors import ReconciliationError
from ..services.reconciliation import process_webhook

bp = Blueprint("webhooks", __name__, url_prefix="/webhooks")

# rota -> identificador do gateway
RECEIVERS = {
    "mercadopago": "mercado_pago",
    "asaas": "asaas",
    "pagseguro": "pagseguro",
    "pagarme": "pagarme",
}


def _receive(gateway: str):
    body = request.get_json(silent=True)
    try:
        outcome = process_webhook(gateway, body, request.headers)
    except ReconciliationError as e:
        # responde OK para o gateway não reenviar indefinidamente
        current_app.logger.warning("Webhook %s descartado: %s", gateway, e.message)
        return "OK", 200
    except Exception:
        current_app.logger.exception("Erro no webhook %s", gateway)
        return "Error", 500
    current_app.logger.debug("Webhook %s: %s", gateway, outcome)
    return "OK", 200


@bp.route("/<provider>", methods=["POST"])
def receive(provider: str):
    gateway = RECEIVERS.get(provider)
    if gateway is None:
        return "Not Found", 404
    return _receive(gateway)
