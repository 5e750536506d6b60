# nutricoach_app/gateways/registry.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Dict, Type

from ..errors import ValidationError

_gateway_registry: Dict[str, Type] = {}


def register_gateway(name: str):
    def _decorator(cls):
        cls.name = name
        _gateway_registry[name] = cls
        return cls

    return _decorator


def supported_gateways():
    """Identificadores dos gateways registrados."""
    return list(_gateway_registry.keys())


def gateway_class(name: str):
    cls = _gateway_registry.get(name or "")
    if cls is None:
        raise ValidationError("Gateway não configurado")
    return cls


def build_gateway(settings, name: str | None = None, timeout: int | None = None):
    """Instancia o adaptador ``name`` (ou o gateway ativo) com as credenciais do dono."""
    cls = gateway_class(name or settings.active_gateway)
    return cls(settings, timeout=timeout)
