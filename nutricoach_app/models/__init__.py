# nutricoach_app/models/__init__.py
# -*- coding: utf-8 -*-
from .user import User
from .plan import SubscriptionPlan
from .payment import Payment
from .payment_settings import PaymentSettings


__all__ = [
    "User",
    "SubscriptionPlan",
    "Payment",
    "PaymentSettings",
]
