# nutricoach_app/gateways/pagarme.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import base64

from flask import current_app

from ..errors import GatewayError
from .base import (
    ChargeResult, PaymentGateway, WebhookEvent,
    PIX_EXPIRATION_MINUTES, boleto_due_date, parse_date, parse_datetime, pix_expiration,
)
from .registry import register_gateway

API_URL = "https://api.pagar.me/core/v5"

# eventos que disparam a consulta do pedido
WEBHOOK_EVENTS = frozenset({
    "order.paid",
    "charge.paid",
    "order.payment_failed",
    "charge.payment_failed",
    "order.canceled",
    "charge.refunded",
})


@register_gateway("pagarme")
class PagarmeGateway(PaymentGateway):
    label = "Pagar.me"
    STATUS_MAP = {
        "paid": "approved",
        "pending": "pending",
        "processing": "pending",
        "canceled": "rejected",
        "failed": "rejected",
    }

    def check_credentials(self) -> None:
        if not self.settings.pm_api_key:
            raise GatewayError("Credenciais do Pagar.me não configuradas", gateway=self.name)

    def _headers(self) -> dict:
        token = base64.b64encode(f"{self.settings.pm_api_key}:".encode()).decode("ascii")
        return {"Content-Type": "application/json", "Authorization": f"Basic {token}"}

    def _customer_id(self, customer) -> str:
        phone = customer.phone_digits
        payload = {
            "name": customer.name,
            "email": customer.email,
            "document": customer.cpf,
            "type": "individual",
            "document_type": "CPF",
        }
        if phone:
            payload["phones"] = {
                "mobile_phone": {"country_code": "55", "area_code": phone[:2], "number": phone[2:]},
            }
        resp, data = self._post(f"{API_URL}/customers", payload)
        if data.get("id"):
            return data["id"]
        # cliente já existente: busca pelo e-mail
        resp, found = self._get(f"{API_URL}/customers", params={"email": customer.email})
        existing = found.get("data") or []
        if existing and existing[0].get("id"):
            return existing[0]["id"]
        current_app.logger.warning("pagarme: falha ao criar cliente (HTTP %s)", resp.status_code)
        raise GatewayError("Erro ao criar cliente", gateway=self.name)

    def create_charge(self, plan, customer, method, card=None):
        self.check_credentials()
        if method == "pix":
            payment = {"payment_method": "pix", "pix": {"expires_in": PIX_EXPIRATION_MINUTES * 60}}
        elif method == "boleto":
            payment = {
                "payment_method": "boleto",
                "boleto": {
                    "instructions": f"Pagamento referente ao plano {plan.name}",
                    "due_at": f"{boleto_due_date().isoformat()}T23:59:59Z",
                },
            }
        elif method == "credit_card":
            payment = {
                "payment_method": "credit_card",
                "credit_card": {
                    "installments": card.installments,
                    "card": {
                        "number": card.number,
                        "holder_name": card.holder_name,
                        "exp_month": card.exp_month,
                        "exp_year": card.exp_year,
                        "cvv": card.cvv,
                        "billing_address": {
                            "line_1": "Não informado",
                            "zip_code": "00000000",
                            "city": "Sao Paulo",
                            "state": "SP",
                            "country": "BR",
                        },
                    },
                },
            }
        else:
            raise GatewayError("Método de pagamento inválido", gateway=self.name)

        customer_id = self._customer_id(customer)
        resp, data = self._post(f"{API_URL}/orders", {
            "customer_id": customer_id,
            "items": [{"amount": plan.price_cents, "description": plan.name, "quantity": 1, "code": str(plan.id)}],
            "payments": [payment],
        })
        if not data.get("id"):
            current_app.logger.warning("pagarme: pedido recusado (HTTP %s): %s", resp.status_code, data.get("message"))
            raise GatewayError(data.get("message") or "Erro ao criar cobrança", gateway=self.name)

        charge = (data.get("charges") or [{}])[0]
        txn = charge.get("last_transaction") or {}
        result = ChargeResult(external_id=data["id"], status=self.map_status(data.get("status")))
        if method == "pix":
            result.pix_qr_code = txn.get("qr_code")
            qr_url = txn.get("qr_code_url")
            result.pix_qr_code_base64 = self._fetch_image_b64(qr_url) if qr_url else None
            result.pix_expiration = parse_datetime(txn.get("expires_at")) or pix_expiration()
        elif method == "boleto":
            result.boleto_url = txn.get("pdf")
            result.boleto_barcode = txn.get("line")
            result.boleto_expiration = parse_date(txn.get("due_at")) or boleto_due_date()
        else:
            result.card_brand = (txn.get("card") or {}).get("brand")
        return result

    def fetch_status(self, external_id):
        self.check_credentials()
        resp, data = self._get(f"{API_URL}/orders/{external_id}")
        if not self._ok(resp) or "status" not in data:
            raise GatewayError("Pedido não encontrado no Pagar.me", gateway=self.name)
        # estorno aparece na charge; o pedido continua "paid" ou vira "canceled"
        if any(c.get("status") == "refunded" for c in data.get("charges") or []):
            return "refunded"
        return self.map_status(data.get("status"))

    @classmethod
    def parse_webhook(cls, body):
        event_type = body.get("type")
        data = body.get("data") or {}
        if not data.get("id") or event_type not in WEBHOOK_EVENTS:
            return None
        # gravamos o id do pedido; eventos de charge trazem o pedido aninhado
        external_id = data["id"]
        if event_type.startswith("charge."):
            external_id = (data.get("order") or {}).get("id") or external_id
        # corpo sem assinatura verificada: o status vem da consulta ao pedido
        return WebhookEvent(external_id=str(external_id), event_type=event_type, payload=body)
