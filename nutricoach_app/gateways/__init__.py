# nutricoach_app/gateways/__init__.py
# -*- coding: utf-8 -*-
from .base import CardData, ChargeResult, Customer, PaymentGateway, WebhookEvent
from .registry import build_gateway, gateway_class, supported_gateways

# registra os adaptadores
from .mercadopago import MercadoPagoGateway
from .asaas import AsaasGateway
from .pagseguro import PagSeguroGateway
from .pagarme import PagarmeGateway


__all__ = [
    "CardData",
    "ChargeResult",
    "Customer",
    "PaymentGateway",
    "WebhookEvent",
    "build_gateway",
    "gateway_class",
    "supported_gateways",
    "MercadoPagoGateway",
    "AsaasGateway",
    "PagSeguroGateway",
    "PagarmeGateway",
]
