# nutricoach_app/services/jobs.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db, scheduler
from ..models import Payment, SubscriptionPlan, User
from . import notifications
from .payment_status import PENDING
from .reconciliation import poll_status


def sweep_pending_payments() -> int:
    """Consulta os pagamentos pendentes recentes (reserva caso um webhook se perca)."""
    max_age = current_app.config.get("PENDING_SWEEP_MAX_AGE_HOURS", 72)
    cutoff = datetime.utcnow() - timedelta(hours=max_age)
    ids = [pid for (pid,) in db.session.query(Payment.id)
           .filter(Payment.status == PENDING,
                   Payment.gateway_payment_id.isnot(None),
                   Payment.created_at >= cutoff)
           .all()]
    changed = 0
    for pid in ids:
        try:
            payment = poll_status(pid)
        except Exception:
            current_app.logger.exception("Varredura: falha ao consultar o pagamento %s", pid)
            db.session.rollback()
            continue
        if payment.status != PENDING:
            changed += 1
    if ids:
        current_app.logger.info("Varredura de pendentes: %s consultados, %s alterados", len(ids), changed)
    return changed


def notify_expiring_plans() -> int:
    """Avisa clientes ativos cujo plano vence em PLAN_EXPIRING_NOTICE_DAYS dias."""
    days = current_app.config.get("PLAN_EXPIRING_NOTICE_DAYS", 3)
    target = datetime.utcnow().date() + timedelta(days=days)
    users = User.query.filter_by(role="client", active=True, plan_end_date=target).all()
    sent = 0
    for user in users:
        last = (user.payments.filter(Payment.status == "approved")
                .order_by(Payment.paid_at.desc()).first())
        plan = db.session.get(SubscriptionPlan, last.plan_id) if last is not None else None
        ok = notifications.send("expiring", user.email, {
            "name": user.name,
            "email": user.email,
            "planName": plan.name if plan is not None else "",
            "planEndDate": user.plan_end_date.strftime("%d/%m/%Y"),
        })
        sent += int(ok)
    return sent


def _in_context(app, func):
    def run():
        with app.app_context():
            func()
    return run


def register_jobs(app) -> None:
    scheduler.add_job(
        _in_context(app, sweep_pending_payments), "interval",
        minutes=app.config.get("PENDING_SWEEP_MINUTES", 10),
        id="sweep_pending_payments", replace_existing=True,
    )
    # diariamente às 09:00
    scheduler.add_job(
        _in_context(app, notify_expiring_plans), "cron", hour=9, minute=0,
        id="notify_expiring_plans", replace_existing=True,
    )
