# nutricoach_app/models/user.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db, bcrypt

class User(db.Model):
    """Conta de acesso + perfil. Clientes são criados pelo provisionamento."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(180), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20))
    role = db.Column(db.String(10), nullable=False, default="client")  # admin, client
    active = db.Column(db.Boolean, default=True)

    # vigência do plano (datas, sem hora)
    plan_start_date = db.Column(db.Date)
    plan_end_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payments = db.relationship(
        "Payment", backref="client", lazy="dynamic", foreign_keys="Payment.client_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def set_password(self, raw: str) -> None:
        self.password_hash = bcrypt.generate_password_hash(raw).decode("utf-8")

    def check_password(self, raw: str) -> bool:
        return bcrypt.check_password_hash(self.password_hash, raw)
