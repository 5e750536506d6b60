# nutricoach_app/gateways/asaas.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import hmac

from flask import current_app

from ..errors import GatewayError
from .base import ChargeResult, PaymentGateway, WebhookEvent, boleto_due_date, parse_date, pix_expiration
from .registry import register_gateway

PRODUCTION_URL = "https://api.asaas.com/v3"
SANDBOX_URL = "https://sandbox.asaas.com/api/v3"

BILLING_TYPES = {"pix": "PIX", "boleto": "BOLETO", "credit_card": "CREDIT_CARD"}

WEBHOOK_EVENTS = {
    "PAYMENT_CONFIRMED": "approved",
    "PAYMENT_RECEIVED": "approved",
    "PAYMENT_OVERDUE": "expired",
    "PAYMENT_DELETED": "rejected",
    "PAYMENT_REFUNDED": "refunded",
}


@register_gateway("asaas")
class AsaasGateway(PaymentGateway):
    label = "Asaas"
    STATUS_MAP = {
        "RECEIVED": "approved",
        "CONFIRMED": "approved",
        "RECEIVED_IN_CASH": "approved",
        "PENDING": "pending",
        "AWAITING_RISK_ANALYSIS": "pending",
        "OVERDUE": "expired",
        "REFUNDED": "refunded",
        "REFUND_REQUESTED": "refunded",
    }
    # qualquer outro status do Asaas é tratado como recusa
    DEFAULT_STATUS = "rejected"

    @property
    def base_url(self) -> str:
        env = self.settings.asaas_environment or "sandbox"
        return PRODUCTION_URL if env == "production" else SANDBOX_URL

    def check_credentials(self) -> None:
        if not self.settings.asaas_api_key:
            raise GatewayError("Credenciais do Asaas não configuradas", gateway=self.name)

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "access_token": self.settings.asaas_api_key}

    def _customer_id(self, customer) -> str:
        """Reaproveita o cliente do Asaas pelo e-mail; cria se não existir."""
        resp, data = self._get(f"{self.base_url}/customers", params={"email": customer.email})
        if self._ok(resp):
            found = (data.get("data") or [])
            if found and found[0].get("id"):
                return found[0]["id"]
        resp, data = self._post(f"{self.base_url}/customers", {
            "name": customer.name,
            "email": customer.email,
            "cpfCnpj": customer.cpf,
            "mobilePhone": customer.phone,
        })
        if not data.get("id"):
            current_app.logger.warning("asaas: falha ao criar cliente (HTTP %s)", resp.status_code)
            raise GatewayError("Erro ao criar cliente", gateway=self.name)
        return data["id"]

    def create_charge(self, plan, customer, method, card=None):
        self.check_credentials()
        billing_type = BILLING_TYPES.get(method)
        if not billing_type:
            raise GatewayError("Método de pagamento inválido", gateway=self.name)

        customer_id = self._customer_id(customer)
        due = boleto_due_date()
        payload = {
            "customer": customer_id,
            "billingType": billing_type,
            "value": plan.price_cents / 100,
            "dueDate": due.isoformat(),
            "description": self.description(plan),
        }
        if method == "credit_card":
            payload["creditCard"] = {
                "holderName": card.holder_name,
                "number": card.number,
                "expiryMonth": str(card.exp_month).zfill(2),
                "expiryYear": str(card.exp_year),
                "ccv": card.cvv,
            }
            payload["creditCardHolderInfo"] = {
                "name": customer.name,
                "email": customer.email,
                "cpfCnpj": customer.cpf,
                "phone": customer.phone,
                "postalCode": "00000000",
                "addressNumber": "0",
            }
            if card.installments > 1:
                payload["installmentCount"] = card.installments
                payload["totalValue"] = payload.pop("value")

        resp, data = self._post(f"{self.base_url}/payments", payload)
        if not data.get("id"):
            errors = data.get("errors") or [{}]
            message = errors[0].get("description") or "Erro ao criar cobrança"
            current_app.logger.warning("asaas: cobrança recusada (HTTP %s): %s", resp.status_code, message)
            raise GatewayError(message, gateway=self.name)

        result = ChargeResult(external_id=data["id"], status=self.map_status(data.get("status")))
        if method == "pix":
            resp, pix = self._get(f"{self.base_url}/payments/{data['id']}/pixQrCode")
            result.pix_qr_code = pix.get("payload")
            result.pix_qr_code_base64 = pix.get("encodedImage")
            result.pix_expiration = pix_expiration()
        elif method == "boleto":
            result.boleto_url = data.get("bankSlipUrl")
            result.boleto_barcode = data.get("nossoNumero")
            result.boleto_expiration = parse_date(data.get("dueDate")) or due
        else:
            result.card_brand = (data.get("creditCard") or {}).get("creditCardBrand")
        return result

    def fetch_status(self, external_id):
        self.check_credentials()
        resp, data = self._get(f"{self.base_url}/payments/{external_id}")
        if not self._ok(resp) or "status" not in data:
            raise GatewayError("Pagamento não encontrado no Asaas", gateway=self.name)
        return self.map_status(data.get("status"))

    def authenticate_webhook(self, headers) -> bool:
        expected = self.settings.asaas_webhook_token
        if not expected:
            return True
        received = (headers or {}).get("asaas-access-token") or ""
        return hmac.compare_digest(received, expected)

    @classmethod
    def parse_webhook(cls, body):
        event = body.get("event")
        payment = body.get("payment") or {}
        if not payment.get("id") or event not in WEBHOOK_EVENTS:
            return None
        return WebhookEvent(external_id=str(payment["id"]), event_type=event,
                            status=WEBHOOK_EVENTS[event], payload=body)
