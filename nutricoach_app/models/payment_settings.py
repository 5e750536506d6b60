# nutricoach_app/models/payment_settings.py
from __future__ import annotations
from datetime import datetime
from ..extensions import db

GATEWAY_NONE = "none"


class PaymentSettings(db.Model):
    """Configuração de cobrança de um dono (nutricionista/treinador).

    Apenas ``active_gateway`` é usado para novas cobranças; as credenciais dos
    demais gateways só servem para reconciliar pagamentos já criados neles.
    """
    __tablename__ = "payment_settings"
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)

    active_gateway = db.Column(db.String(20), default=GATEWAY_NONE)  # none, mercado_pago, asaas, pagseguro, pagarme

    # Mercado Pago
    mp_access_token = db.Column(db.Text)
    mp_public_key = db.Column(db.Text)

    # Asaas
    asaas_api_key = db.Column(db.Text)
    asaas_environment = db.Column(db.String(10), default="sandbox")  # sandbox, production
    asaas_webhook_token = db.Column(db.String(255))

    # PagSeguro
    ps_email = db.Column(db.Text)
    ps_token = db.Column(db.Text)
    ps_environment = db.Column(db.String(10), default="production")

    # Pagar.me
    pm_api_key = db.Column(db.Text)
    pm_encryption_key = db.Column(db.Text)

    # habilitar meios
    pix_enabled = db.Column(db.Boolean, default=True)
    boleto_enabled = db.Column(db.Boolean, default=True)
    credit_card_enabled = db.Column(db.Boolean, default=True)

    # checkout público
    checkout_slug = db.Column(db.String(50), unique=True, index=True)
    checkout_title = db.Column(db.Text, default="Plano de Acompanhamento")
    checkout_description = db.Column(db.Text)
    checkout_success_message = db.Column(
        db.Text,
        default="Pagamento realizado com sucesso! Você receberá um email com suas credenciais de acesso.",
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def method_enabled(self, method: str) -> bool:
        return bool({
            "pix": self.pix_enabled,
            "boleto": self.boleto_enabled,
            "credit_card": self.credit_card_enabled,
        }.get(method))

    def enabled_methods(self) -> list[str]:
        return [m for m in ("pix", "boleto", "credit_card") if self.method_enabled(m)]

    @property
    def has_active_gateway(self) -> bool:
        return bool(self.active_gateway) and self.active_gateway != GATEWAY_NONE
