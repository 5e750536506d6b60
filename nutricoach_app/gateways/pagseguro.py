# nutricoach_app/gateways/pagseguro.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import uuid

from flask import current_app

from ..errors import GatewayError
from .base import ChargeResult, PaymentGateway, WebhookEvent, boleto_due_date, parse_date, parse_datetime, pix_expiration
from .registry import register_gateway

PRODUCTION_URL = "https://api.pagseguro.com"
SANDBOX_URL = "https://sandbox.api.pagseguro.com"


def _link(links, media: str) -> str | None:
    for link in links or []:
        if link.get("media") == media:
            return link.get("href")
    return None


@register_gateway("pagseguro")
class PagSeguroGateway(PaymentGateway):
    label = "PagSeguro"
    # status de charge (cartão/boleto) e de qr_code (PIX)
    STATUS_MAP = {
        "PAID": "approved",
        "AUTHORIZED": "pending",
        "IN_ANALYSIS": "pending",
        "WAITING": "pending",
        "DECLINED": "rejected",
        "CANCELED": "rejected",
    }

    @property
    def base_url(self) -> str:
        env = getattr(self.settings, "ps_environment", None) or "production"
        return SANDBOX_URL if env == "sandbox" else PRODUCTION_URL

    def check_credentials(self) -> None:
        if not self.settings.ps_token or not self.settings.ps_email:
            raise GatewayError("Credenciais do PagSeguro não configuradas", gateway=self.name)

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.settings.ps_token}"}

    @classmethod
    def order_status(cls, order: dict) -> str | None:
        """Status interno de um pedido: qualquer charge/QR pago aprova o pedido.

        None quando nada no pedido permite decidir (sem candidato).
        """
        status = None
        for qr in order.get("qr_codes") or []:
            if qr.get("status") == "PAID":
                return "approved"
        for charge in order.get("charges") or []:
            mapped = cls.map_status(charge.get("status"))
            if mapped == "approved":
                return "approved"
            if mapped == "rejected":
                status = "rejected"
            elif mapped == "pending" and status is None:
                status = "pending"
        return status

    def create_charge(self, plan, customer, method, card=None):
        self.check_credentials()
        phone = customer.phone_digits
        payload = {
            "reference_id": str(uuid.uuid4()),
            "customer": {
                "name": customer.name,
                "email": customer.email,
                "tax_id": customer.cpf,
                "phones": [{
                    "country": "55",
                    "area": phone[:2],
                    "number": phone[2:],
                    "type": "MOBILE",
                }] if phone else [],
            },
            "items": [{
                "reference_id": str(plan.id),
                "name": plan.name,
                "quantity": 1,
                "unit_amount": plan.price_cents,
            }],
        }
        if method == "pix":
            payload["qr_codes"] = [{
                "amount": {"value": plan.price_cents},
                "expiration_date": pix_expiration().strftime("%Y-%m-%dT%H:%M:%S-00:00"),
            }]
        elif method == "boleto":
            payload["charges"] = [{
                "reference_id": str(uuid.uuid4()),
                "description": self.description(plan),
                "amount": {"value": plan.price_cents, "currency": "BRL"},
                "payment_method": {
                    "type": "BOLETO",
                    "boleto": {
                        "due_date": boleto_due_date().isoformat(),
                        "instruction_lines": {
                            "line_1": f"Pagamento referente ao plano {plan.name}",
                            "line_2": f"Válido por {plan.duration_days} dias",
                        },
                        "holder": {"name": customer.name, "tax_id": customer.cpf, "email": customer.email},
                    },
                },
            }]
        elif method == "credit_card":
            payload["charges"] = [{
                "reference_id": str(uuid.uuid4()),
                "description": self.description(plan),
                "amount": {"value": plan.price_cents, "currency": "BRL"},
                "payment_method": {
                    "type": "CREDIT_CARD",
                    "installments": card.installments,
                    "capture": True,
                    "card": {
                        "number": card.number,
                        "exp_month": str(card.exp_month).zfill(2),
                        "exp_year": str(card.exp_year),
                        "security_code": card.cvv,
                        "holder": {"name": card.holder_name},
                    },
                },
            }]
        else:
            raise GatewayError("Método de pagamento inválido", gateway=self.name)

        resp, data = self._post(f"{self.base_url}/orders", payload)
        if not self._ok(resp) or not data.get("id"):
            msgs = data.get("error_messages") or [{}]
            message = msgs[0].get("description") or "Erro ao processar pagamento"
            current_app.logger.warning("pagseguro: pedido recusado (HTTP %s): %s", resp.status_code, message)
            raise GatewayError(message, gateway=self.name)

        result = ChargeResult(external_id=data["id"], status="pending")
        if method == "pix" and data.get("qr_codes"):
            qr = data["qr_codes"][0]
            result.pix_qr_code = qr.get("text")
            png = _link(qr.get("links"), "image/png")
            result.pix_qr_code_base64 = self._fetch_image_b64(png) if png else None
            result.pix_expiration = parse_datetime(qr.get("expiration_date")) or pix_expiration()
        elif method == "boleto" and data.get("charges"):
            charge = data["charges"][0]
            boleto = (charge.get("payment_method") or {}).get("boleto") or {}
            result.boleto_url = _link(charge.get("links"), "application/pdf")
            result.boleto_barcode = boleto.get("formatted_barcode") or boleto.get("barcode")
            result.boleto_expiration = parse_date(boleto.get("due_date")) or boleto_due_date()
        elif method == "credit_card" and data.get("charges"):
            charge = data["charges"][0]
            result.status = "approved" if charge.get("status") == "PAID" else self.map_status(charge.get("status"))
            result.card_brand = ((charge.get("payment_method") or {}).get("card") or {}).get("brand")
        return result

    def fetch_status(self, external_id):
        self.check_credentials()
        resp, data = self._get(f"{self.base_url}/orders/{external_id}")
        if not self._ok(resp) or not data.get("id"):
            raise GatewayError("Pedido não encontrado no PagSeguro", gateway=self.name)
        return self.order_status(data)

    @classmethod
    def parse_webhook(cls, body):
        # o corpo é o próprio pedido, mas não é assinado: o status vem da consulta
        order_id = body.get("id")
        if not order_id:
            return None
        return WebhookEvent(external_id=str(order_id), event_type="order", payload=body)
