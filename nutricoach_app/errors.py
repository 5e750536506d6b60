# nutricoach_app/errors.py
# -*- coding: utf-8 -*-
from __future__ import annotations


class PaymentError(Exception):
    """Base dos erros do núcleo de pagamentos. A mensagem é exibível ao usuário."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PaymentError):
    """Pré-condição não atendida (plano inativo, método desabilitado, sem gateway).

    Levantado antes de qualquer chamada externa.
    """


class GatewayError(PaymentError):
    """Falha de transporte ou recusa do provedor ao criar/consultar cobrança."""

    def __init__(self, message: str, gateway: str | None = None):
        super().__init__(message)
        self.gateway = gateway


class ReconciliationError(PaymentError):
    """Corpo de webhook malformado ou não reconhecido."""


class ProvisioningError(PaymentError):
    """Falha ao criar/estender a conta do cliente após a aprovação."""
