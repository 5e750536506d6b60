# nutricoach_app/blueprints/checkout.py
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app, session

from ..decorators import login_required
from ..errors import GatewayError, ValidationError
from ..models import Payment
from ..services.checkout import checkout_descriptor, create_payment, parse_checkout_request
from ..services.reconciliation import poll_status

bp = Blueprint("checkout", __name__, url_prefix="/api")


@bp.route("/checkout/<slug>")
def checkout_page(slug: str):
    """Dados públicos do checkout (planos ativos e métodos habilitados)."""
    data = checkout_descriptor(slug)
    if data is None:
        return jsonify(error="Checkout não encontrado"), 404
    return jsonify(data)


@bp.route("/checkout", methods=["POST"])
def create_checkout():
    """Cria a cobrança no gateway ativo do dono.

    Resposta: payment_id, status e os campos do método (PIX/boleto), ou {error}.
    """
    try:
        req = parse_checkout_request(request.get_json(silent=True))
        payment = create_payment(req["owner_id"], req["plan_id"], req["method"], req["customer"], req["card"])
    except (ValidationError, GatewayError) as e:
        return jsonify(error=e.message), 400
    except Exception:
        current_app.logger.exception("Falha inesperada no checkout")
        return jsonify(error="Erro interno do servidor"), 500
    return jsonify(payment.to_checkout_dict())


@bp.route("/payments/status", methods=["POST"])
def payment_status():
    data = request.get_json(silent=True) or {}
    payment_id = data.get("payment_id")
    if not payment_id:
        return jsonify(error="payment_id é obrigatório"), 400
    try:
        payment = poll_status(str(payment_id))
    except ValidationError as e:
        return jsonify(error=e.message), 404
    body = {"status": payment.status}
    if payment.paid_at:
        body["paid_at"] = payment.paid_at.isoformat()
    return jsonify(body)


@bp.route("/me/payments")
@login_required
def my_payments():
    """Histórico do cliente logado."""
    user_id = session["user"].get("id")
    rows = Payment.query.filter_by(client_id=user_id).order_by(Payment.created_at.desc()).all()
    return jsonify(payments=[p.to_admin_dict() for p in rows])
