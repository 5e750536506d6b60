# nutricoach_app/gateways/base.py
# -*- coding: utf-8 -*-
"""Interface comum dos gateways de pagamento.

Cada gateway traduz uma cobrança normalizada (plano + cliente + método) para a
API do provedor e traduz o vocabulário de status do provedor para os cinco
status internos (ver ``services.payment_status``).
"""
from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

import requests
from flask import current_app

from ..errors import GatewayError

METHODS = ("pix", "boleto", "credit_card")
PIX_EXPIRATION_MINUTES = 30
BOLETO_BUSINESS_DAYS = 3


@dataclass
class Customer:
    name: str
    email: str
    cpf: str
    phone: Optional[str] = None

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0]

    @property
    def last_name(self) -> str:
        rest = " ".join(self.name.split(" ")[1:])
        return rest or self.name

    @property
    def phone_digits(self) -> str:
        return "".join(ch for ch in (self.phone or "") if ch.isdigit())


@dataclass
class CardData:
    """Dados sensíveis do cartão. Só trafegam até o gateway; nunca são gravados."""
    number: str = field(repr=False)
    holder_name: str = field(repr=False)
    exp_month: int = field(repr=False)
    exp_year: int = field(repr=False)
    cvv: str = field(repr=False)
    installments: int = 1

    @property
    def last_digits(self) -> str:
        return self.number[-4:]


@dataclass
class ChargeResult:
    external_id: str
    status: str
    pix_qr_code: Optional[str] = None
    pix_qr_code_base64: Optional[str] = None
    pix_expiration: Optional[datetime] = None
    boleto_url: Optional[str] = None
    boleto_barcode: Optional[str] = None
    boleto_expiration: Optional[date] = None
    card_brand: Optional[str] = None


@dataclass
class WebhookEvent:
    """Notificação já interpretada.

    ``status`` None significa que o corpo não traz o status e é preciso
    consultar o gateway (caso do Mercado Pago).
    """
    external_id: str
    event_type: str
    status: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict, repr=False)


def add_business_days(start: date, days: int) -> date:
    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if current.weekday() < 5:
            added += 1
    return current


def pix_expiration(now: datetime | None = None) -> datetime:
    return (now or datetime.utcnow()) + timedelta(minutes=PIX_EXPIRATION_MINUTES)


def boleto_due_date(today: date | None = None) -> date:
    return add_business_days(today or datetime.utcnow().date(), BOLETO_BUSINESS_DAYS)


def parse_date(value) -> date | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value)[:10]).date()
    except ValueError:
        return None


def parse_datetime(value) -> datetime | None:
    """ISO 8601 -> datetime UTC ingênuo (como gravamos no banco)."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = (dt - dt.utcoffset()).replace(tzinfo=None)
    return dt


class PaymentGateway(ABC):
    """Adaptador de um provedor.

    As subclasses só levantam ``GatewayError``; falhas de rede, timeout e
    respostas não-JSON são convertidas aqui.
    """

    name: str = ""
    label: str = ""
    # tabela status nativo -> status interno
    STATUS_MAP: Dict[str, str] = {}
    DEFAULT_STATUS = "pending"

    def __init__(self, settings, timeout: int | None = None):
        self.settings = settings
        if timeout is None:
            timeout = current_app.config.get("GATEWAY_TIMEOUT_SECONDS", 20)
        self.timeout = timeout

    # ---------- contrato ----------
    @abstractmethod
    def create_charge(self, plan, customer: Customer, method: str,
                      card: CardData | None = None) -> ChargeResult:
        """Cria a cobrança no provedor."""

    @abstractmethod
    def fetch_status(self, external_id: str) -> str:
        """Consulta o status atual e devolve o status interno (None se indeterminado)."""

    @classmethod
    @abstractmethod
    def parse_webhook(cls, body: dict) -> WebhookEvent | None:
        """Extrai (id externo, status candidato) do corpo nativo; None = ignorar.

        Não depende de credenciais: o dono só é conhecido depois de localizar o
        pagamento pelo id externo.
        """

    def authenticate_webhook(self, headers) -> bool:
        """Confere o segredo do webhook com as credenciais do dono, se houver."""
        return True

    def check_credentials(self) -> None:
        """Levanta GatewayError se as credenciais não estiverem configuradas."""

    # ---------- helpers ----------
    @classmethod
    def map_status(cls, native) -> str:
        return cls.STATUS_MAP.get(native, cls.DEFAULT_STATUS)

    def description(self, plan) -> str:
        return f"{plan.name} - {plan.duration_days} dias"

    def _headers(self) -> dict:
        return {"Content-Type": "application/json"}

    def _comm_error(self) -> GatewayError:
        return GatewayError(f"Erro de comunicação com {self.label}", gateway=self.name)

    def _send(self, method: str, url: str, payload=None, headers=None, params=None):
        hdrs = self._headers()
        hdrs.update(headers or {})
        try:
            if method == "GET":
                resp = requests.get(url, headers=hdrs, params=params, timeout=self.timeout)
            else:
                resp = requests.post(url, json=payload, headers=hdrs, timeout=self.timeout)
        except requests.RequestException as e:
            # timeout também cai aqui: nunca é tratado como aprovação
            current_app.logger.warning("%s: falha de transporte em %s %s: %s",
                                       self.name, method, url, type(e).__name__)
            raise self._comm_error()
        try:
            data = resp.json()
        except ValueError:
            data = {}
        return resp, data

    def _get(self, url: str, headers=None, params=None):
        return self._send("GET", url, headers=headers, params=params)

    def _post(self, url: str, payload: dict, headers=None):
        return self._send("POST", url, payload=payload, headers=headers)

    @staticmethod
    def _ok(resp) -> bool:
        return 200 <= int(getattr(resp, "status_code", 500)) < 300

    def _fetch_image_b64(self, url: str) -> str | None:
        """Baixa a imagem do QR code e devolve em base64 (None se falhar)."""
        try:
            resp = requests.get(url, timeout=self.timeout)
        except requests.RequestException:
            current_app.logger.warning("%s: não foi possível baixar o QR code", self.name)
            return None
        content = getattr(resp, "content", None)
        if not self._ok(resp) or not content:
            return None
        return base64.b64encode(content).decode("ascii")
