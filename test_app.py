from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.config import Settings
from app.core.init import ConfigurationError, check_payment_settings
from app.utils import mailer as mailer_module
from app.utils.mailer import Mailer


# ---------------------------------------------------------------------------
# Startup checks
# ---------------------------------------------------------------------------
def test_sandbox_is_refused_in_production():
    config = Settings(production=True, payment_sandbox_enabled=True)

    assert config.sandbox_active is False
    with pytest.raises(ConfigurationError):
        check_payment_settings(config)


def test_sandbox_is_allowed_outside_production():
    config = Settings(production=False, payment_sandbox_enabled=True)

    check_payment_settings(config)
    assert config.sandbox_active is True


def test_missing_credentials_only_warn(caplog):
    config = Settings(shopier_api_key="", shopier_api_secret="")

    check_payment_settings(config)

    assert "checkout will answer 500" in caplog.text


def test_csv_settings_are_split():
    config = Settings(payment_sandbox_prefixes="TEST-, DEMO-", supported_locales="tr,en,de")

    assert config.payment_sandbox_prefixes == ["TEST-", "DEMO-"]
    assert config.supported_locales == ["tr", "en", "de"]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
def test_root_and_health(client):
    assert client.get("/").json()["status"] == "healthy"

    health = client.get("/health").json()
    assert health["database"] == "healthy"
    assert health["payments"] == "configured"


# ---------------------------------------------------------------------------
# Mail
# ---------------------------------------------------------------------------
class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username))

    def send_message(self, message):
        self.messages.append(message)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(mailer_module.smtplib, "SMTP_SSL", FakeSMTP)
    return FakeSMTP


def make_order(locale="tr"):
    return SimpleNamespace(
        order_id="MYU-1",
        locale=locale,
        buyer_name="Ali Veli",
        buyer_email="ali@example.com",
        course_name="Data Science",
        amount=Decimal("48"),
    )


def test_disabled_mailer_sends_nothing(fake_smtp):
    mailer = Mailer("smtp.test", 587, enabled=False)

    assert mailer.send("a@example.com", "Hi", "Body") is False
    assert fake_smtp.instances == []


def test_tls_mailer_logs_in_and_sends(fake_smtp):
    mailer = Mailer("smtp.test", 587, username="u", password="p", encryption="tls", from_name="MyUNI")

    assert mailer.send("a@example.com", "Hi", "Body") is True

    smtp = fake_smtp.instances[0]
    assert smtp.calls == ["starttls", ("login", "u")]
    assert smtp.messages[0]["To"] == "a@example.com"
    assert "MyUNI" in smtp.messages[0]["From"]


def test_purchase_confirmation_is_localised(fake_smtp):
    mailer = Mailer("smtp.test", 465, encryption="ssl")

    mailer.send_purchase_confirmation(make_order("en"), SimpleNamespace(slug="data-science"))

    message = fake_smtp.instances[0].messages[0]
    assert message["Subject"] == "Purchase confirmation: Data Science"
    body = message.get_content()
    assert "MYU-1" in body
    assert "48.00" in body
    assert "/en/watch/course/data-science" in body


def test_unknown_locale_falls_back_to_english(fake_smtp):
    Mailer("smtp.test", 25, encryption="").send_purchase_confirmation(make_order("de"))

    assert fake_smtp.instances[0].messages[0]["Subject"].startswith("Purchase confirmation")
