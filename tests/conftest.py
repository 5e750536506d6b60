# tests/conftest.py
# -*- coding: utf-8 -*-
import os
import sys
import pathlib
import tempfile

import pytest


# =====================================================================================
# Localização do projeto (garante que "nutricoach_app" e "config" estejam no sys.path)
# =====================================================================================
def _add_project_root():
    here = pathlib.Path(__file__).resolve()
    for candidate in [here.parent, *here.parents]:
        if (candidate / "nutricoach_app").is_dir():
            if str(candidate) not in sys.path:
                sys.path.insert(0, str(candidate))
            return candidate
    return None


PROJECT_ROOT = _add_project_root()


# =====================================================================================
# Ambiente de testes unitários (sem serviços externos)
# =====================================================================================
@pytest.fixture(autouse=True, scope="session")
def _testing_env():
    os.environ["APP_ENV"] = "testing"
    os.environ["FLASK_ENV"] = "testing"
    os.environ["DISABLE_SCHEDULER"] = "1"
    os.environ.setdefault("SECRET_KEY", "testing-secret")
    yield


# =====================================================================================
# App Flask com SQLite temporário
# =====================================================================================
@pytest.fixture(scope="session")
def app(_testing_env):
    fd, db_path = tempfile.mkstemp(prefix="nutricoach_test_", suffix=".sqlite")
    os.close(fd)

    from nutricoach_app import create_app
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        "RESEND_API_KEY": "re_test_123",
        "APP_URL": "https://app.example.test",
    })

    yield app

    try:
        os.remove(db_path)
    except OSError:
        pass


# =====================================================================================
# Schema limpo e app context por teste.
# As requisições do test client reaproveitam este app context (mesma db.session).
# =====================================================================================
@pytest.fixture(autouse=True)
def _app_ctx(app):
    from nutricoach_app.extensions import db
    with app.app_context():
        db.drop_all()
        db.create_all()
        yield
        db.session.rollback()
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session():
    from nutricoach_app.extensions import db
    return db.session


# =====================================================================================
# HTTP falso: requests.get/post nunca saem para a rede
# =====================================================================================
class FakeResponse:
    def __init__(self, status_code=200, json_data=None, content=b""):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.text = "OK"

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


class FakeHTTP:
    """Roteia por (método, trecho da URL); a última rota registrada vence."""

    def __init__(self):
        self.routes = []
        self.calls = []

    def on(self, method, url_part, json=None, status=200, content=b"", exc=None):
        target = exc if exc is not None else FakeResponse(status, json if json is not None else {}, content)
        self.routes.append((method, url_part, target))
        return self

    def _dispatch(self, method, url, kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        for m, part, target in reversed(self.routes):
            if m == method and part in url:
                if isinstance(target, Exception):
                    raise target
                return target
        return FakeResponse(200, {})

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, kwargs)

    def calls_to(self, url_part, method=None):
        return [c for c in self.calls
                if url_part in c["url"] and (method is None or c["method"] == method)]

    def gateway_calls(self):
        return [c for c in self.calls if "api.resend.com" not in c["url"]]


@pytest.fixture(autouse=True)
def http(monkeypatch):
    import requests
    fake = FakeHTTP()
    monkeypatch.setattr(requests, "get", fake.get)
    monkeypatch.setattr(requests, "post", fake.post)
    return fake


@pytest.fixture
def sent_emails(monkeypatch):
    """Captura as notificações em vez de chamar o Resend."""
    from nutricoach_app.services import notifications
    sent = []

    def fake_send(type, to, data):
        sent.append({"type": type, "to": to, "data": dict(data)})
        return True

    monkeypatch.setattr(notifications, "send", fake_send)
    return sent


# =====================================================================================
# Factories de modelos
# =====================================================================================
@pytest.fixture
def owner(db_session):
    from nutricoach_app.models import User
    u = User(name="Nutri Admin", email="admin@nutri.test", role="admin")
    u.set_password("secret123")
    db_session.add(u); db_session.commit()
    return u


@pytest.fixture
def settings(db_session, owner):
    from nutricoach_app.models import PaymentSettings
    s = PaymentSettings(
        owner_id=owner.id,
        active_gateway="asaas",
        mp_access_token="TEST-mp-token",
        mp_public_key="TEST-mp-public",
        asaas_api_key="asaas_key_123",
        asaas_environment="sandbox",
        ps_email="loja@nutri.test",
        ps_token="ps_token_123",
        pm_api_key="sk_test_pm",
        pix_enabled=True,
        boleto_enabled=True,
        credit_card_enabled=True,
        checkout_slug="nutri",
    )
    db_session.add(s); db_session.commit()
    return s


@pytest.fixture
def plan(db_session, owner):
    from nutricoach_app.models import SubscriptionPlan
    p = SubscriptionPlan(owner_id=owner.id, name="Mensal", duration_days=30, price_cents=9900,
                         features=["Dieta personalizada", "Treino"], is_active=True)
    db_session.add(p); db_session.commit()
    return p


@pytest.fixture
def customer():
    from nutricoach_app.gateways import Customer
    return Customer(name="Maria Silva Souza", email="maria@cliente.test", cpf="12345678909", phone="11987654321")


@pytest.fixture
def card():
    from nutricoach_app.gateways import CardData
    return CardData(number="4111111111111111", holder_name="MARIA S SOUZA", exp_month=7,
                    exp_year=2030, cvv="123", installments=1)


@pytest.fixture
def make_payment(db_session, owner, plan):
    """Cria um Payment já registrado (como se o checkout tivesse acontecido)."""
    from nutricoach_app.models import Payment

    def _make(gateway="asaas", external_id="pay_123", status="pending", method="pix",
              email="maria@cliente.test", client_id=None, **extra):
        p = Payment(
            owner_id=owner.id, plan_id=plan.id, gateway=gateway, gateway_payment_id=external_id,
            amount_cents=plan.price_cents, duration_days=plan.duration_days,
            payment_method=method, status=status, customer_email=email,
            customer_name="Maria Silva Souza", customer_phone="11987654321",
            customer_cpf="12345678909", client_id=client_id, **extra,
        )
        db_session.add(p); db_session.commit()
        return p

    return _make


@pytest.fixture
def logged_client_admin(client, owner):
    with client.session_transaction() as sess:
        sess["user"] = {"id": owner.id, "email": owner.email, "is_admin": True}
    return client
