# nutricoach_app/models/plan.py
from __future__ import annotations
from datetime import datetime
from ..extensions import db

class SubscriptionPlan(db.Model):
    __tablename__ = "subscription_plans"
    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    duration_days = db.Column(db.Integer, nullable=False, default=30)
    # preço sempre em centavos
    price_cents = db.Column(db.Integer, nullable=False)

    features = db.Column(db.JSON, default=list)     # lista de strings para a landing

    # exibição
    is_active = db.Column(db.Boolean, default=True)
    is_featured = db.Column(db.Boolean, default=False)
    display_order = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_subscription_plans_owner_active", "owner_id", "is_active"),
    )

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "duration_days": self.duration_days,
            "price_cents": self.price_cents,
            "features": list(self.features or []),
            "is_featured": bool(self.is_featured),
        }
