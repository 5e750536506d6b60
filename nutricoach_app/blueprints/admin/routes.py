# nutricoach_app/blueprints/admin/routes.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime, timedelta
from flask import request, session, jsonify
from sqlalchemy import func
from ..admin import admin_bp
from ...decorators import admin_required
from ...errors import ProvisioningError, ValidationError
from ...extensions import db
from ...gateways import supported_gateways
from ...models import Payment
from ...services.payment_status import APPROVED, PENDING, STATUSES
from ...services.provisioning import repair_provisioning
from ...services.reconciliation import poll_status


def _owner_id() -> int:
    return session["user"]["id"]


def _own_payment(payment_id: str) -> Payment | None:
    payment = db.session.get(Payment, payment_id)
    if payment is None or payment.owner_id != _owner_id():
        return None
    return payment


@admin_bp.route("/payments")
@admin_required
def payments_list():
    q = Payment.query.filter_by(owner_id=_owner_id())
    status = (request.args.get("status") or "").strip()
    if status:
        if status not in STATUSES:
            return jsonify(error="Status inválido"), 400
        q = q.filter_by(status=status)
    gateway = (request.args.get("gateway") or "").strip()
    if gateway:
        if gateway not in supported_gateways():
            return jsonify(error="Gateway inválido"), 400
        q = q.filter_by(gateway=gateway)
    if request.args.get("unprovisioned") == "1":
        q = q.filter(Payment.status == APPROVED, Payment.client_id.is_(None))
    try:
        limit = min(int(request.args.get("limit", 50)), 200)
    except ValueError:
        limit = 50
    rows = q.order_by(Payment.created_at.desc()).limit(limit).all()
    return jsonify(payments=[p.to_admin_dict() for p in rows])


@admin_bp.route("/payments/summary")
@admin_required
def payments_summary():
    """Receita aprovada (centavos) hoje, 7 dias, mês e total."""
    now = datetime.utcnow()
    today = datetime(now.year, now.month, now.day)
    starts = {
        "today": today,
        "week": today - timedelta(days=7),
        "month": datetime(now.year, now.month, 1),
    }
    base = db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)).filter(
        Payment.owner_id == _owner_id(), Payment.status == APPROVED
    )
    stats = {key: int(base.filter(Payment.paid_at >= start).scalar() or 0) for key, start in starts.items()}
    stats["total"] = int(base.scalar() or 0)
    counts = dict(
        db.session.query(Payment.status, func.count(Payment.id))
        .filter(Payment.owner_id == _owner_id())
        .group_by(Payment.status).all()
    )
    stats["approved_count"] = int(counts.get(APPROVED, 0))
    stats["pending_count"] = int(counts.get(PENDING, 0))
    return jsonify(stats)


@admin_bp.route("/payments/<payment_id>")
@admin_required
def payment_detail(payment_id):
    payment = _own_payment(payment_id)
    if payment is None:
        return jsonify(error="Pagamento não encontrado"), 404
    data = payment.to_admin_dict()
    data["webhook_data"] = payment.webhook_data
    return jsonify(data)


@admin_bp.route("/payments/<payment_id>/refresh", methods=["POST"])
@admin_required
def payment_refresh(payment_id):
    """Força a consulta do status no gateway."""
    payment = _own_payment(payment_id)
    if payment is None:
        return jsonify(error="Pagamento não encontrado"), 404
    payment = poll_status(payment.id)
    return jsonify(payment.to_admin_dict())


@admin_bp.route("/payments/<payment_id>/provision", methods=["POST"])
@admin_required
def payment_provision(payment_id):
    """Reparo: provisiona um pagamento aprovado que ficou sem cliente."""
    payment = _own_payment(payment_id)
    if payment is None:
        return jsonify(error="Pagamento não encontrado"), 404
    try:
        user = repair_provisioning(payment.id)
    except ValidationError as e:
        return jsonify(error=e.message), 409
    except ProvisioningError as e:
        return jsonify(error=e.message), 500
    return jsonify(payment_id=payment.id, client_id=user.id,
                   plan_end_date=user.plan_end_date.isoformat())
