# nutricoach_app/services/provisioning.py
# -*- coding: utf-8 -*-
"""Efeito colateral da aprovação: criar ou estender a conta do cliente.

Chamado no máximo uma vez por aprovação. O controle disso fica na transição
atômica de ``services.reconciliation``; aqui não há proteção contra chamadas
duplicadas, exceto o vínculo ``client_id`` que só é gravado uma vez.
"""
from __future__ import annotations

import secrets
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ProvisioningError, ValidationError
from ..extensions import db
from ..models import Payment, SubscriptionPlan, User
from . import notifications
from .payment_status import APPROVED

# sem caracteres confundíveis (0/O, 1/l/I)
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
PASSWORD_LENGTH = 8


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def _today() -> date:
    return datetime.utcnow().date()


def _fmt(d: date) -> str:
    return d.strftime("%d/%m/%Y")


def extended_end_date(current_end: date | None, duration_days: int, today: date) -> date:
    """Plano vigente: soma ao fim atual. Vencido ou sem data: recomeça hoje."""
    if current_end and current_end > today:
        return current_end + timedelta(days=duration_days)
    return today + timedelta(days=duration_days)


def _renew(user: User, duration_days: int, today: date) -> None:
    user.plan_end_date = extended_end_date(user.plan_end_date, duration_days, today)
    if not user.plan_start_date:
        user.plan_start_date = today
    user.active = True


def _link(payment: Payment, user: User) -> None:
    res = db.session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.client_id.is_(None))
        .values(client_id=user.id)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ProvisioningError(f"Pagamento {payment.id} já vinculado a outro cliente")


def _notify(kind: str, user: User, plan: SubscriptionPlan, password: str | None = None) -> None:
    data = {
        "name": user.name,
        "email": user.email,
        "planName": plan.name,
        "planEndDate": _fmt(user.plan_end_date),
    }
    if password:
        data["password"] = password
    notifications.send(kind, user.email, data)


def provision_payment(payment: Payment) -> User:
    """Cria/estende a conta do cliente do pagamento aprovado e notifica.

    Levanta ProvisioningError; o pagamento continua aprovado.
    """
    plan = db.session.get(SubscriptionPlan, payment.plan_id)
    if plan is None:
        raise ProvisioningError(f"Plano {payment.plan_id} não encontrado")
    duration = payment.duration_days or plan.duration_days
    today = _today()
    password = None

    try:
        if payment.client_id:
            # renovação
            user = db.session.get(User, payment.client_id)
            if user is None:
                raise ProvisioningError(f"Cliente {payment.client_id} não encontrado")
            _renew(user, duration, today)
            kind = "renewal"
        else:
            email = (payment.customer_email or "").strip().lower()
            user = User.query.filter_by(email=email).first()
            if user is not None:
                _renew(user, duration, today)
                kind = "renewal"
            else:
                password = generate_password()
                user = User(
                    name=payment.customer_name,
                    email=email,
                    phone=payment.customer_phone,
                    role="client",
                    active=True,
                    plan_start_date=today,
                    plan_end_date=today + timedelta(days=duration),
                )
                user.set_password(password)
                db.session.add(user)
                db.session.flush()
                kind = "welcome"
            _link(payment, user)
        db.session.commit()
    except ProvisioningError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise ProvisioningError(f"Falha ao gravar conta do cliente: {e.__class__.__name__}") from e

    db.session.refresh(payment)
    current_app.logger.info("Pagamento %s: %s do cliente %s até %s",
                            payment.id, "conta criada" if kind == "welcome" else "plano estendido",
                            user.id, user.plan_end_date)
    _notify(kind, user, plan, password)
    return user


def handle_approval(payment: Payment) -> User | None:
    """Provisiona após a primeira aprovação; falha fica registrada para reparo manual."""
    try:
        return provision_payment(payment)
    except ProvisioningError as e:
        current_app.logger.exception("Provisionamento falhou para o pagamento %s", payment.id)
        payment = db.session.get(Payment, payment.id)
        if payment is not None:
            payment.error_message = f"Provisionamento: {e.message}"
            db.session.commit()
        return None


def repair_provisioning(payment_id: str) -> User:
    """Reexecuta o provisionamento de um pagamento aprovado e ainda sem cliente."""
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise ValidationError("Pagamento não encontrado")
    if payment.status != APPROVED:
        raise ValidationError("Só pagamentos aprovados podem ser provisionados")
    if payment.client_id:
        raise ValidationError("Pagamento já vinculado a um cliente")
    user = provision_payment(payment)
    payment.error_message = None
    db.session.commit()
    return user
