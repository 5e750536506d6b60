# nutricoach_app/services/reconciliation.py
# -*- coding: utf-8 -*-
"""Reconciliação de status: webhooks e consultas convergem em ``apply_status``.

A gravação é um compare-and-set na linha do pagamento
(``UPDATE ... WHERE id = :id AND status = :atual``). Só quem efetivamente
muda ``pending -> approved`` dispara o provisionamento, então um webhook e uma
consulta simultâneos não provisionam duas vezes.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update

from ..errors import GatewayError, PaymentError, ReconciliationError, ValidationError
from ..extensions import db
from ..gateways import build_gateway, gateway_class
from ..models import Payment, PaymentSettings
from .payment_status import APPROVED, FINAL_FOR_POLLING, can_transition, is_first_approval
from .provisioning import handle_approval

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({
    "card_number", "security_code", "cvv", "ccv", "token", "card_token",
    "access_token", "api_key", "secret", "password", "authorization",
})
CARD_KEYS = frozenset({"card", "creditCard", "credit_card"})
CARD_FIELDS = frozenset({
    "number", "holder_name", "holderName", "exp_month", "exp_year", "expiryMonth", "expiryYear",
})


def redact(value, in_card: bool = False):
    """Cópia do payload sem dados de cartão nem credenciais."""
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if key in SENSITIVE_KEYS or (in_card and key in CARD_FIELDS):
                out[key] = REDACTED
            else:
                out[key] = redact(item, in_card or key in CARD_KEYS)
        return out
    if isinstance(value, list):
        return [redact(item, in_card) for item in value]
    return value


def apply_status(payment: Payment, candidate: str, raw_payload=None, source: str = "poll") -> bool:
    """Aplica o status candidato. True se esta chamada gravou a transição."""
    db.session.refresh(payment)
    current = payment.status
    if candidate == current:
        return False
    if not can_transition(current, candidate):
        current_app.logger.info("Pagamento %s: %s ignorou %s (status atual %s)",
                                payment.id, source, candidate, current)
        return False

    now = datetime.utcnow()
    values = {"status": candidate, "updated_at": now}
    if candidate == APPROVED:
        values["paid_at"] = now
    if raw_payload is not None:
        values["webhook_data"] = redact(raw_payload)

    res = db.session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(payment)
    if res.rowcount != 1:
        # outra notificação/consulta gravou antes
        current_app.logger.info("Pagamento %s: transição %s -> %s perdida para outra atualização",
                                payment.id, current, candidate)
        return False

    current_app.logger.info("Pagamento %s: %s -> %s (%s)", payment.id, current, candidate, source)
    if is_first_approval(current, candidate):
        handle_approval(payment)
    return True


def _settings_for(payment: Payment) -> PaymentSettings | None:
    return PaymentSettings.query.filter_by(owner_id=payment.owner_id).first()


def process_webhook(gateway_name: str, body, headers=None) -> str:
    """Trata a notificação de um gateway e devolve o desfecho (para log/teste).

    Levanta ReconciliationError para corpos malformados; o receptor responde
    200 mesmo assim.
    """
    try:
        cls = gateway_class(gateway_name)
    except ValidationError:
        raise ReconciliationError(f"Gateway desconhecido: {gateway_name}")
    if not isinstance(body, dict):
        raise ReconciliationError("Corpo do webhook inválido")

    event = cls.parse_webhook(body)
    if event is None:
        current_app.logger.info("Webhook %s ignorado (evento não tratado)", gateway_name)
        return "ignored"

    payment = Payment.query.filter_by(gateway=gateway_name, gateway_payment_id=event.external_id).first()
    if payment is None:
        current_app.logger.info("Webhook %s: pagamento %s não encontrado", gateway_name, event.external_id)
        return "not_found"

    settings = _settings_for(payment)
    gateway = cls(settings) if settings is not None else None
    if gateway is not None and not gateway.authenticate_webhook(headers):
        current_app.logger.warning("Webhook %s: autenticação falhou para o pagamento %s",
                                   gateway_name, payment.id)
        return "unauthorized"

    candidate = event.status
    if candidate is None:
        if gateway is None:
            return "ignored"
        try:
            candidate = gateway.fetch_status(event.external_id)
        except GatewayError as e:
            current_app.logger.warning("Webhook %s: consulta do pagamento %s falhou: %s",
                                       gateway_name, payment.id, e.message)
            return "lookup_failed"
    if candidate is None:
        return "unchanged"

    applied = apply_status(payment, candidate, raw_payload=body, source=f"webhook {gateway_name}")
    return "updated" if applied else "unchanged"


def poll_status(payment_id: str) -> Payment:
    """Consulta o gateway e reconcilia; falhas devolvem o último status gravado."""
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise ValidationError("Pagamento não encontrado")
    if payment.status in FINAL_FOR_POLLING or not payment.gateway_payment_id:
        return payment

    settings = _settings_for(payment)
    if settings is None:
        return payment
    try:
        gateway = build_gateway(settings, name=payment.gateway)
        candidate = gateway.fetch_status(payment.gateway_payment_id)
    except PaymentError as e:
        current_app.logger.warning("Consulta do pagamento %s falhou: %s", payment.id, e.message)
        return payment

    if candidate is not None:
        apply_status(payment, candidate, source="poll")
    return payment
