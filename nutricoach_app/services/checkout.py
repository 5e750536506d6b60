# nutricoach_app/services/checkout.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..gateways import build_gateway
from ..gateways.base import METHODS, CardData, Customer
from ..models import Payment, PaymentSettings, SubscriptionPlan, User
from .payment_status import PENDING
from .reconciliation import apply_status

METHOD_LABELS = {"pix": "PIX", "boleto": "Boleto", "credit_card": "Cartão de crédito"}
MAX_INSTALLMENTS = 12


def _int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Campo inválido: {field}")


def parse_checkout_request(data) -> dict:
    """Valida o formato do corpo do checkout e monta Customer/CardData."""
    if not isinstance(data, dict):
        raise ValidationError("Dados incompletos")
    owner_id = data.get("owner_id")
    plan_id = data.get("plan_id")
    method = data.get("payment_method")
    raw_customer = data.get("customer") or {}
    if not owner_id or not plan_id or not method:
        raise ValidationError("Dados incompletos")
    if not isinstance(raw_customer, dict) or not raw_customer:
        raise ValidationError("Dados incompletos")
    if method not in METHODS:
        raise ValidationError("Método de pagamento inválido")

    name = (raw_customer.get("name") or "").strip()
    email = (raw_customer.get("email") or "").strip().lower()
    cpf = "".join(ch for ch in str(raw_customer.get("cpf") or "") if ch.isdigit())
    if not name or not email or not cpf:
        raise ValidationError("Nome, e-mail e CPF são obrigatórios")
    customer = Customer(name=name, email=email, cpf=cpf, phone=raw_customer.get("phone") or None)

    card = None
    raw_card = data.get("card")
    if method == "credit_card":
        if not isinstance(raw_card, dict) or not raw_card:
            raise ValidationError("Dados do cartão são obrigatórios")
        number = "".join(ch for ch in str(raw_card.get("number") or "") if ch.isdigit())
        if len(number) < 12 or not raw_card.get("cvv") or not raw_card.get("holder_name"):
            raise ValidationError("Dados do cartão são obrigatórios")
        installments = _int(raw_card.get("installments") or 1, "installments")
        if not 1 <= installments <= MAX_INSTALLMENTS:
            raise ValidationError(f"Parcelamento deve ser entre 1 e {MAX_INSTALLMENTS}")
        card = CardData(
            number=number,
            holder_name=str(raw_card["holder_name"]).strip(),
            exp_month=_int(raw_card.get("exp_month"), "exp_month"),
            exp_year=_int(raw_card.get("exp_year"), "exp_year"),
            cvv=str(raw_card["cvv"]),
            installments=installments,
        )

    return {
        "owner_id": _int(owner_id, "owner_id"),
        "plan_id": _int(plan_id, "plan_id"),
        "method": method,
        "customer": customer,
        "card": card,
    }


def create_payment(owner_id: int, plan_id: int, method: str, customer: Customer,
                   card: CardData | None = None) -> Payment:
    """Cria a cobrança no gateway ativo do dono e registra o Payment.

    Pré-condições são verificadas antes de qualquer chamada externa. Em erro do
    gateway (GatewayError) nada é gravado.
    """
    if method not in METHODS:
        raise ValidationError("Método de pagamento inválido")
    if method == "credit_card" and card is None:
        raise ValidationError("Dados do cartão são obrigatórios")

    settings = PaymentSettings.query.filter_by(owner_id=owner_id).first()
    if settings is None:
        raise ValidationError("Configurações de pagamento não encontradas")
    if not settings.method_enabled(method):
        raise ValidationError(f"{METHOD_LABELS[method]} não está habilitado")

    plan = db.session.get(SubscriptionPlan, plan_id)
    if plan is None or not plan.is_active or plan.owner_id != owner_id:
        raise ValidationError("Plano não encontrado")
    if not settings.has_active_gateway:
        raise ValidationError("Gateway não configurado")

    gateway = build_gateway(settings)
    result = gateway.create_charge(plan, customer, method, card)

    existing = User.query.filter_by(email=customer.email.lower()).first()
    payment = Payment(
        owner_id=owner_id,
        client_id=existing.id if existing is not None else None,
        plan_id=plan.id,
        gateway=gateway.name,
        gateway_payment_id=result.external_id,
        amount_cents=plan.price_cents,
        duration_days=plan.duration_days,
        payment_method=method,
        # aprovação síncrona passa pela mesma transição guardada dos webhooks
        status=PENDING,
        customer_email=customer.email.lower(),
        customer_name=customer.name,
        customer_phone=customer.phone,
        customer_cpf=customer.cpf,
        pix_qr_code=result.pix_qr_code,
        pix_qr_code_base64=result.pix_qr_code_base64,
        pix_expiration=result.pix_expiration,
        boleto_url=result.boleto_url,
        boleto_barcode=result.boleto_barcode,
        boleto_expiration=result.boleto_expiration,
        card_last_digits=card.last_digits if card is not None else None,
        card_brand=result.card_brand,
        installments=card.installments if card is not None else 1,
    )
    db.session.add(payment)
    db.session.commit()
    current_app.logger.info("Pagamento %s criado no %s (%s, %s centavos)",
                            payment.id, gateway.name, method, payment.amount_cents)

    if result.status != PENDING:
        apply_status(payment, result.status, source="checkout")
    return payment


def checkout_descriptor(slug: str) -> dict | None:
    """Dados públicos da página de checkout de um dono."""
    settings = PaymentSettings.query.filter_by(checkout_slug=slug).first()
    if settings is None or not settings.has_active_gateway:
        return None
    plans = (SubscriptionPlan.query
             .filter_by(owner_id=settings.owner_id, is_active=True)
             .order_by(SubscriptionPlan.display_order.asc(), SubscriptionPlan.price_cents.asc())
             .all())
    return {
        "owner_id": settings.owner_id,
        "title": settings.checkout_title,
        "description": settings.checkout_description,
        "success_message": settings.checkout_success_message,
        "payment_methods": settings.enabled_methods(),
        "mp_public_key": settings.mp_public_key if settings.active_gateway == "mercado_pago" else None,
        "plans": [p.to_public_dict() for p in plans],
    }
