# nutricoach_app/models/payment.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import uuid
from datetime import datetime
from ..extensions import db


def _new_id() -> str:
    return str(uuid.uuid4())


class Payment(db.Model):
    """Registro de auditoria de cada tentativa de cobrança. Nunca é apagado."""
    __tablename__ = "payments"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=True)  # NULL até existir conta
    plan_id = db.Column(db.Integer, db.ForeignKey("subscription_plans.id"), nullable=False)

    # gateway
    gateway = db.Column(db.String(20), nullable=False)           # mercado_pago, asaas, pagseguro, pagarme
    gateway_payment_id = db.Column(db.String(255))

    # valores (snapshot do plano no momento da cobrança)
    amount_cents = db.Column(db.Integer, nullable=False)
    duration_days = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)   # pix, boleto, credit_card
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)  # pending, approved, rejected, expired, refunded

    # cliente (capturado no checkout)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(20))
    customer_cpf = db.Column(db.String(14))

    # PIX
    pix_qr_code = db.Column(db.Text)
    pix_qr_code_base64 = db.Column(db.Text)
    pix_expiration = db.Column(db.DateTime)

    # boleto
    boleto_url = db.Column(db.Text)
    boleto_barcode = db.Column(db.Text)
    boleto_expiration = db.Column(db.Date)

    # cartão (nunca o número completo)
    card_last_digits = db.Column(db.String(4))
    card_brand = db.Column(db.String(20))
    installments = db.Column(db.Integer, default=1)

    # rastreio
    paid_at = db.Column(db.DateTime)
    webhook_data = db.Column(db.JSON)
    error_message = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    plan = db.relationship("SubscriptionPlan")

    __table_args__ = (
        db.UniqueConstraint("gateway", "gateway_payment_id", name="uq_payments_gateway_external_id"),
    )

    def to_checkout_dict(self) -> dict:
        return {
            "payment_id": self.id,
            "status": self.status,
            "pix_qr_code": self.pix_qr_code,
            "pix_qr_code_base64": self.pix_qr_code_base64,
            "pix_expiration": self.pix_expiration.isoformat() if self.pix_expiration else None,
            "boleto_url": self.boleto_url,
            "boleto_barcode": self.boleto_barcode,
            "boleto_expiration": self.boleto_expiration.isoformat() if self.boleto_expiration else None,
        }

    def to_admin_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "plan_id": self.plan_id,
            "gateway": self.gateway,
            "gateway_payment_id": self.gateway_payment_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "card_last_digits": self.card_last_digits,
            "card_brand": self.card_brand,
            "installments": self.installments,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
