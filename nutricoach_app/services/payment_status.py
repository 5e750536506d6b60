# nutricoach_app/services/payment_status.py
# -*- coding: utf-8 -*-
"""Máquina de estados do pagamento (sem I/O).

Estados: pending, approved, rejected, expired, refunded.

- ``pending`` é o único estado não terminal;
- ``approved -> refunded`` é a única saída de um estado terminal;
- um status recebido é apenas candidato: nunca substitui outro de precedência
  maior (refunded > approved > rejected/expired > pending).
"""
from __future__ import annotations

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
EXPIRED = "expired"
REFUNDED = "refunded"

STATUSES = (PENDING, APPROVED, REJECTED, EXPIRED, REFUNDED)

PRECEDENCE = {
    PENDING: 0,
    REJECTED: 1,
    EXPIRED: 1,
    APPROVED: 2,
    REFUNDED: 3,
}

# transições permitidas a partir de cada estado
TRANSITIONS = {
    PENDING: frozenset({APPROVED, REJECTED, EXPIRED, REFUNDED}),
    APPROVED: frozenset({REFUNDED}),
    REJECTED: frozenset(),
    EXPIRED: frozenset(),
    REFUNDED: frozenset(),
}

# a consulta ao gateway é dispensada para estes (approved ainda pode virar refunded)
FINAL_FOR_POLLING = frozenset({REJECTED, EXPIRED, REFUNDED})


def is_valid(status) -> bool:
    return status in PRECEDENCE


def can_transition(current: str, candidate: str) -> bool:
    """True se ``candidate`` deve ser gravado sobre ``current``.

    Mesmo status é no-op (False); status desconhecido nunca é gravado.
    """
    if not is_valid(candidate) or candidate == current:
        return False
    if candidate not in TRANSITIONS.get(current, frozenset()):
        return False
    return PRECEDENCE[candidate] >= PRECEDENCE.get(current, 0)


def is_first_approval(current: str, candidate: str) -> bool:
    return candidate == APPROVED and current != APPROVED and can_transition(current, candidate)
