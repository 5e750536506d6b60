# tests/test_provisioning.py
# -*- coding: utf-8 -*-
from datetime import date, timedelta

import pytest

import nutricoach_app.services.provisioning as prov
from nutricoach_app.errors import ProvisioningError, ValidationError
from nutricoach_app.extensions import db
from nutricoach_app.models import Payment, User
from nutricoach_app.services.reconciliation import apply_status

TODAY = date(2030, 5, 10)


@pytest.fixture(autouse=True)
def _fixed_today(monkeypatch):
    monkeypatch.setattr(prov, "_today", lambda: TODAY)
    yield


@pytest.fixture
def client_user(db_session):
    def _make(end_date, email="maria@cliente.test"):
        u = User(name="Maria", email=email, role="client", active=True,
                 plan_start_date=TODAY - timedelta(days=60), plan_end_date=end_date)
        u.set_password("antiga123")
        db_session.add(u); db_session.commit()
        return u
    return _make


# -----------------------------------------------------------------------------
# Regras de data
# -----------------------------------------------------------------------------
def test_extended_end_date_rules():
    assert prov.extended_end_date(TODAY + timedelta(days=10), 30, TODAY) == TODAY + timedelta(days=40)
    assert prov.extended_end_date(TODAY - timedelta(days=1), 30, TODAY) == TODAY + timedelta(days=30)
    assert prov.extended_end_date(TODAY, 30, TODAY) == TODAY + timedelta(days=30)
    assert prov.extended_end_date(None, 30, TODAY) == TODAY + timedelta(days=30)


def test_generate_password_policy():
    for _ in range(50):
        pwd = prov.generate_password()
        assert len(pwd) == 8
        assert not set(pwd) & set("0O1lI")


# -----------------------------------------------------------------------------
# Fluxos
# -----------------------------------------------------------------------------
def test_renewal_extends_active_plan(make_payment, client_user, sent_emails):
    user = client_user(TODAY + timedelta(days=10))
    payment = make_payment(client_id=user.id)

    assert apply_status(payment, "approved") is True

    db.session.refresh(user)
    assert user.plan_end_date == TODAY + timedelta(days=40)
    assert user.plan_start_date == TODAY - timedelta(days=60)
    assert [e["type"] for e in sent_emails] == ["renewal"]
    assert sent_emails[0]["data"]["planEndDate"] == (TODAY + timedelta(days=40)).strftime("%d/%m/%Y")
    assert "password" not in sent_emails[0]["data"]


def test_renewal_restarts_expired_plan(make_payment, client_user, sent_emails):
    user = client_user(TODAY - timedelta(days=1))
    user.active = False
    db.session.commit()
    payment = make_payment(client_id=user.id)

    apply_status(payment, "approved")

    db.session.refresh(user)
    assert user.plan_end_date == TODAY + timedelta(days=30)
    assert user.active is True


def test_existing_email_is_linked_not_duplicated(make_payment, client_user, sent_emails):
    user = client_user(TODAY + timedelta(days=5))
    payment = make_payment(email="Maria@Cliente.test")

    apply_status(payment, "approved")

    db.session.refresh(payment)
    assert payment.client_id == user.id
    assert User.query.filter_by(role="client").count() == 1
    assert sent_emails[0]["type"] == "renewal"
    # senha antiga preservada
    assert user.check_password("antiga123")


def test_new_client_gets_plan_window(make_payment, sent_emails):
    payment = make_payment()
    apply_status(payment, "approved")

    user = User.query.filter_by(email="maria@cliente.test").one()
    assert user.plan_start_date == TODAY
    assert user.plan_end_date == TODAY + timedelta(days=30)
    assert user.phone == "11987654321"
    assert sent_emails[0]["data"]["planName"] == "Mensal"


def test_duration_comes_from_payment_snapshot(make_payment, plan, sent_emails):
    payment = make_payment()
    plan.duration_days = 90  # plano alterado depois da cobrança
    db.session.commit()

    apply_status(payment, "approved")

    user = User.query.filter_by(email="maria@cliente.test").one()
    assert user.plan_end_date == TODAY + timedelta(days=30)


def test_failure_keeps_payment_approved(make_payment, monkeypatch, sent_emails):
    payment = make_payment()

    def boom(*a, **k):
        raise ProvisioningError("banco indisponível")

    monkeypatch.setattr(prov, "provision_payment", boom)

    assert apply_status(payment, "approved") is True

    db.session.refresh(payment)
    assert payment.status == "approved"
    assert payment.client_id is None
    assert payment.error_message == "Provisionamento: banco indisponível"
    assert sent_emails == []


def test_notification_failure_does_not_undo_account(make_payment, monkeypatch):
    import nutricoach_app.services.notifications as notifications
    monkeypatch.setattr(notifications, "send", lambda *a, **k: False)
    payment = make_payment()

    apply_status(payment, "approved")

    db.session.refresh(payment)
    assert payment.client_id is not None
    assert payment.error_message is None


# -----------------------------------------------------------------------------
# Reparo manual
# -----------------------------------------------------------------------------
def test_repair_provisioning(make_payment, sent_emails):
    payment = make_payment(status="approved", error_message="Provisionamento: falhou")

    user = prov.repair_provisioning(payment.id)

    db.session.refresh(payment)
    assert payment.client_id == user.id
    assert payment.error_message is None
    assert sent_emails[0]["type"] == "welcome"


def test_repair_rejects_pending_and_linked(make_payment, client_user):
    pending = make_payment(external_id="p1")
    with pytest.raises(ValidationError):
        prov.repair_provisioning(pending.id)

    user = client_user(TODAY)
    linked = make_payment(external_id="p2", status="approved", client_id=user.id)
    with pytest.raises(ValidationError):
        prov.repair_provisioning(linked.id)

    with pytest.raises(ValidationError):
        prov.repair_provisioning("nope")


def test_link_is_written_once(make_payment, client_user, db_session):
    user = client_user(TODAY)
    other = client_user(TODAY, email="outra@cliente.test")
    payment = make_payment(status="approved", client_id=user.id)
    with pytest.raises(ProvisioningError):
        prov._link(payment, other)
    db_session.rollback()
    assert db.session.get(Payment, payment.id).client_id == user.id
