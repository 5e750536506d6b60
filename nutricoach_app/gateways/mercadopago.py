# nutricoach_app/gateways/mercadopago.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import uuid
from datetime import datetime

from flask import current_app

from ..errors import GatewayError
from .base import (
    CardData, ChargeResult, Customer, PaymentGateway, WebhookEvent,
    boleto_due_date, pix_expiration,
)
from .registry import register_gateway

API_URL = "https://api.mercadopago.com"


def _iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%S.000+00:00")


@register_gateway("mercado_pago")
class MercadoPagoGateway(PaymentGateway):
    label = "Mercado Pago"
    STATUS_MAP = {
        "approved": "approved",
        "pending": "pending",
        "in_process": "pending",
        "authorized": "pending",
        "rejected": "rejected",
        "cancelled": "rejected",
        "refunded": "refunded",
        "charged_back": "refunded",
    }

    def check_credentials(self) -> None:
        if not self.settings.mp_access_token:
            raise GatewayError("Credenciais do Mercado Pago não configuradas", gateway=self.name)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.mp_access_token}",
        }

    def _card_token(self, card: CardData, customer: Customer) -> tuple[str, str]:
        resp, data = self._post(f"{API_URL}/v1/card_tokens", {
            "card_number": card.number,
            "cardholder": {
                "name": card.holder_name,
                "identification": {"type": "CPF", "number": customer.cpf},
            },
            "expiration_month": card.exp_month,
            "expiration_year": card.exp_year,
            "security_code": card.cvv,
        })
        if not self._ok(resp) or not data.get("id"):
            current_app.logger.warning("mercado_pago: tokenização recusada (HTTP %s)", resp.status_code)
            raise GatewayError("Erro ao processar cartão", gateway=self.name)
        brand = (data.get("payment_method") or {}).get("id") or "visa"
        return data["id"], brand

    def create_charge(self, plan, customer, method, card=None):
        self.check_credentials()
        payload = {
            "transaction_amount": plan.price_cents / 100,
            "description": self.description(plan),
            "payer": {
                "email": customer.email,
                "first_name": customer.first_name,
                "last_name": customer.last_name,
                "identification": {"type": "CPF", "number": customer.cpf},
            },
        }
        expires = None
        due = None
        if method == "pix":
            expires = pix_expiration()
            payload["payment_method_id"] = "pix"
            payload["date_of_expiration"] = _iso(expires)
        elif method == "boleto":
            due = boleto_due_date()
            payload["payment_method_id"] = "bolbradesco"
            payload["date_of_expiration"] = f"{due.isoformat()}T23:59:59.000-03:00"
        elif method == "credit_card":
            token, brand = self._card_token(card, customer)
            payload["token"] = token
            payload["installments"] = card.installments
            payload["payment_method_id"] = brand
        else:
            raise GatewayError("Método de pagamento inválido", gateway=self.name)

        resp, data = self._post(f"{API_URL}/v1/payments", payload,
                                headers={"X-Idempotency-Key": str(uuid.uuid4())})
        if not self._ok(resp) or not data.get("id"):
            current_app.logger.warning("mercado_pago: cobrança recusada (HTTP %s): %s",
                                       resp.status_code, data.get("message"))
            raise GatewayError(data.get("message") or "Erro ao processar pagamento", gateway=self.name)

        result = ChargeResult(external_id=str(data["id"]), status=self.map_status(data.get("status")))
        if method == "pix":
            tx = (data.get("point_of_interaction") or {}).get("transaction_data") or {}
            result.pix_qr_code = tx.get("qr_code")
            result.pix_qr_code_base64 = tx.get("qr_code_base64")
            result.pix_expiration = expires
        elif method == "boleto":
            result.boleto_url = (data.get("transaction_details") or {}).get("external_resource_url")
            result.boleto_barcode = (data.get("barcode") or {}).get("content")
            result.boleto_expiration = due
        else:
            result.card_brand = data.get("payment_method_id")
        return result

    def fetch_status(self, external_id):
        self.check_credentials()
        resp, data = self._get(f"{API_URL}/v1/payments/{external_id}")
        if not self._ok(resp) or "status" not in data:
            raise GatewayError("Pagamento não encontrado no Mercado Pago", gateway=self.name)
        return self.map_status(data.get("status"))

    @classmethod
    def parse_webhook(cls, body):
        # notificações trazem só o id; o status vem de uma consulta à API
        action = body.get("action") or ""
        if body.get("type") != "payment" and action not in ("payment.created", "payment.updated"):
            return None
        payment_id = (body.get("data") or {}).get("id")
        if not payment_id:
            return None
        return WebhookEvent(external_id=str(payment_id), event_type=action or "payment", payload=body)
