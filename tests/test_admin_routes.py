# tests/test_admin_routes.py
# -*- coding: utf-8 -*-
from datetime import datetime, timedelta

import pytest

from nutricoach_app.extensions import db
from nutricoach_app.models import User


# -----------------------------------------------------------------------------
# Acesso
# -----------------------------------------------------------------------------
def test_requires_login(client):
    assert client.get("/admin/payments").status_code == 401


def test_requires_admin(client, owner):
    with client.session_transaction() as sess:
        sess["user"] = {"id": owner.id, "email": owner.email, "is_admin": False}
    r = client.get("/admin/payments")
    assert r.status_code == 403
    assert r.get_json()["error"] == "Acesso restrito ao administrador."


# -----------------------------------------------------------------------------
# Listagem e resumo
# -----------------------------------------------------------------------------
def test_list_with_filters(logged_client_admin, make_payment):
    make_payment(external_id="a", status="approved", paid_at=datetime.utcnow())
    make_payment(external_id="b", status="pending")
    make_payment(external_id="c", gateway="pagarme", status="rejected")

    r = logged_client_admin.get("/admin/payments")
    assert r.status_code == 200
    assert len(r.get_json()["payments"]) == 3

    r = logged_client_admin.get("/admin/payments?status=approved")
    assert [p["gateway_payment_id"] for p in r.get_json()["payments"]] == ["a"]

    r = logged_client_admin.get("/admin/payments?gateway=pagarme")
    assert [p["gateway_payment_id"] for p in r.get_json()["payments"]] == ["c"]

    r = logged_client_admin.get("/admin/payments?unprovisioned=1")
    assert [p["gateway_payment_id"] for p in r.get_json()["payments"]] == ["a"]

    assert logged_client_admin.get("/admin/payments?status=paid").status_code == 400
    assert logged_client_admin.get("/admin/payments?gateway=paypal").status_code == 400


def test_list_is_scoped_to_owner(logged_client_admin, make_payment, plan, db_session):
    from nutricoach_app.models import Payment
    other = User(name="Outra", email="outra@nutri.test", role="admin")
    other.set_password("x")
    db_session.add(other); db_session.commit()
    db_session.add(Payment(owner_id=other.id, plan_id=plan.id, gateway="asaas", gateway_payment_id="z",
                           amount_cents=100, duration_days=30, payment_method="pix",
                           customer_email="x@x.test", customer_name="X"))
    db_session.commit()
    make_payment(external_id="mine")

    rows = logged_client_admin.get("/admin/payments").get_json()["payments"]
    assert [p["gateway_payment_id"] for p in rows] == ["mine"]


def test_summary(logged_client_admin, make_payment):
    now = datetime.utcnow()
    make_payment(external_id="a", status="approved", paid_at=now)
    make_payment(external_id="b", status="approved", paid_at=now - timedelta(days=400))
    make_payment(external_id="c", status="pending")

    data = logged_client_admin.get("/admin/payments/summary").get_json()

    assert data["today"] == 9900
    assert data["week"] == 9900
    assert data["month"] == 9900
    assert data["total"] == 19800
    assert data["approved_count"] == 2
    assert data["pending_count"] == 1


# -----------------------------------------------------------------------------
# Detalhe, consulta e reparo
# -----------------------------------------------------------------------------
def test_detail_includes_webhook_data(logged_client_admin, make_payment):
    payment = make_payment(webhook_data={"event": "PAYMENT_CONFIRMED"})
    data = logged_client_admin.get(f"/admin/payments/{payment.id}").get_json()
    assert data["id"] == payment.id
    assert data["webhook_data"] == {"event": "PAYMENT_CONFIRMED"}
    assert logged_client_admin.get("/admin/payments/nope").status_code == 404


def test_refresh(logged_client_admin, settings, make_payment, http, sent_emails):
    payment = make_payment()
    http.on("GET", "/payments/pay_123", json={"id": "pay_123", "status": "OVERDUE"})
    r = logged_client_admin.post(f"/admin/payments/{payment.id}/refresh")
    assert r.status_code == 200
    assert r.get_json()["status"] == "expired"


def test_provision_repair(logged_client_admin, make_payment, sent_emails):
    payment = make_payment(status="approved")
    r = logged_client_admin.post(f"/admin/payments/{payment.id}/provision")
    assert r.status_code == 200
    body = r.get_json()
    assert body["client_id"]
    db.session.refresh(payment)
    assert payment.client_id == body["client_id"]

    # segunda vez: já vinculado
    r = logged_client_admin.post(f"/admin/payments/{payment.id}/provision")
    assert r.status_code == 409


@pytest.mark.parametrize("status", ["pending", "rejected"])
def test_provision_requires_approved(logged_client_admin, make_payment, status):
    payment = make_payment(status=status)
    assert logged_client_admin.post(f"/admin/payments/{payment.id}/provision").status_code == 409
