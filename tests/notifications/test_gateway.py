import pytest

from trueque_auth.auth.constants import OTPChannel, OTPPurpose
from trueque_auth.exceptions import DeliveryError
from trueque_auth.notifications import NotificationGateway
from trueque_auth.notifications import brevo, smtp, twilio
from trueque_auth.notifications.gateway import render_email, render_sms


class _Recorder:
    def __init__(self, result: bool) -> None:
        self.result = result
        self.calls: list[tuple] = []

    async def __call__(self, *args) -> bool:
        self.calls.append(args)
        return self.result


def _configured(settings, **overrides):
    values = {
        "smtp_host": "smtp.example.com",
        "smtp_username": "mailer",
        "brevo_api_key": "brevo-key",
        "twilio_account_sid": "AC123",
        "twilio_auth_token": "token",
        "twilio_from_number": "+15550001111",
    }
    values.update(overrides)
    return settings.model_copy(update=values)


def test_render_email_mentions_code_and_purpose(settings) -> None:
    subject, html = render_email("482913", OTPPurpose.RESET, settings)
    assert "482913" in subject
    assert "482913" in html
    assert "reset your password" in html
    assert "5 minutes" in html


def test_render_sms(settings) -> None:
    assert render_sms("482913", settings) == (
        "Your TruequeVE verification code is 482913. It expires in 5 minutes."
    )


@pytest.mark.asyncio
async def test_email_uses_smtp_first(settings, monkeypatch) -> None:
    smtp_send, brevo_send = _Recorder(True), _Recorder(True)
    monkeypatch.setattr(smtp, "deliver", smtp_send)
    monkeypatch.setattr(brevo, "deliver", brevo_send)

    gateway = NotificationGateway(_configured(settings))
    await gateway.send_code(OTPChannel.EMAIL, "ana@example.com", "482913", OTPPurpose.LOGIN)

    assert len(smtp_send.calls) == 1
    assert smtp_send.calls[0][0] == "ana@example.com"
    assert brevo_send.calls == []


@pytest.mark.asyncio
async def test_email_falls_back_to_brevo(settings, monkeypatch) -> None:
    smtp_send, brevo_send = _Recorder(False), _Recorder(True)
    monkeypatch.setattr(smtp, "deliver", smtp_send)
    monkeypatch.setattr(brevo, "deliver", brevo_send)

    gateway = NotificationGateway(_configured(settings))
    await gateway.send_code(OTPChannel.EMAIL, "ana@example.com", "482913", OTPPurpose.LOGIN)

    assert len(brevo_send.calls) == 1


@pytest.mark.asyncio
async def test_email_raises_when_every_provider_fails(settings, monkeypatch) -> None:
    monkeypatch.setattr(smtp, "deliver", _Recorder(False))
    monkeypatch.setattr(brevo, "deliver", _Recorder(False))

    gateway = NotificationGateway(_configured(settings))
    with pytest.raises(DeliveryError):
        await gateway.send_code(OTPChannel.EMAIL, "ana@example.com", "482913", OTPPurpose.LOGIN)


@pytest.mark.asyncio
async def test_smtp_only_failure_raises(settings, monkeypatch) -> None:
    monkeypatch.setattr(smtp, "deliver", _Recorder(False))

    gateway = NotificationGateway(_configured(settings, brevo_api_key=""))
    with pytest.raises(DeliveryError):
        await gateway.send_code(OTPChannel.EMAIL, "ana@example.com", "482913", OTPPurpose.LOGIN)


@pytest.mark.asyncio
async def test_sms_goes_through_twilio(settings, monkeypatch) -> None:
    sms = _Recorder(True)
    monkeypatch.setattr(twilio, "send_sms", sms)

    gateway = NotificationGateway(_configured(settings))
    await gateway.send_code(OTPChannel.PHONE, "+584121234567", "482913", OTPPurpose.LOGIN)

    assert sms.calls[0][0] == "+584121234567"
    assert "482913" in sms.calls[0][1]


@pytest.mark.asyncio
async def test_sms_failure_raises(settings, monkeypatch) -> None:
    monkeypatch.setattr(twilio, "send_sms", _Recorder(False))

    gateway = NotificationGateway(_configured(settings))
    with pytest.raises(DeliveryError):
        await gateway.send_code(OTPChannel.PHONE, "+584121234567", "482913", OTPPurpose.LOGIN)


@pytest.mark.asyncio
async def test_unconfigured_development_only_logs(settings, caplog) -> None:
    gateway = NotificationGateway(settings)
    with caplog.at_level("INFO", logger="trueque_auth.notifications.gateway"):
        await gateway.send_code(OTPChannel.EMAIL, "ana@example.com", "482913", OTPPurpose.LOGIN)
    assert "482913" in caplog.text


@pytest.mark.asyncio
async def test_unconfigured_production_raises(settings) -> None:
    gateway = NotificationGateway(settings.model_copy(update={"env_name": "production"}))
    with pytest.raises(DeliveryError):
        await gateway.send_code(OTPChannel.PHONE, "+584121234567", "482913", OTPPurpose.LOGIN)
