from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import DeliveryException, ValidationException
from app.models.otp import OTPCode
from app.services.otp_service import (
    DEV_OTP_CODE, INVALID_OR_EXPIRED, MAX_ATTEMPTS, MAX_ATTEMPTS_EXCEEDED,
    OTPService, generate_otp,
)

EMAIL = "rider@convoyapp.io"


def _live_codes(session, email=EMAIL):
    return session.query(OTPCode).filter(OTPCode.email == email, OTPCode.is_used == False).all()  # noqa: E712


def test_generate_otp_is_six_digits():
    for _ in range(50):
        code = generate_otp()
        assert len(code) == 6 and code.isdigit()
        assert 100000 <= int(code) <= 999999


@pytest.mark.asyncio
async def test_issue_delivers_code(otp_service, outbox):
    result = await otp_service.issue(EMAIL)

    assert result.channel == "email"
    assert result.expires_in_minutes == 10
    assert result.dev_code is None
    assert outbox.sent[0][0] == EMAIL


@pytest.mark.asyncio
async def test_issue_normalizes_email(otp_service, outbox, session):
    await otp_service.issue("  Rider@ConvoyApp.io ")
    assert outbox.sent[0][0] == EMAIL
    assert len(_live_codes(session)) == 1


@pytest.mark.asyncio
async def test_issue_blank_email_rejected(otp_service):
    with pytest.raises(ValidationException):
        await otp_service.issue("   ")


@pytest.mark.asyncio
async def test_reissue_invalidates_previous_code(otp_service, outbox, session):
    await otp_service.issue(EMAIL)
    first = outbox.last_code(EMAIL)
    await otp_service.issue(EMAIL)
    second = outbox.last_code(EMAIL)

    assert len(_live_codes(session)) == 1
    if first != second:
        assert otp_service.verify(EMAIL, first).verified is False
    assert otp_service.verify(EMAIL, second).verified is True


@pytest.mark.asyncio
async def test_verify_consumes_code(otp_service, outbox):
    await otp_service.issue(EMAIL)
    code = outbox.last_code(EMAIL)

    assert otp_service.verify(EMAIL, code).verified is True
    second = otp_service.verify(EMAIL, code)
    assert second.verified is False
    assert second.reason == INVALID_OR_EXPIRED


def test_verify_without_challenge(otp_service):
    result = otp_service.verify(EMAIL, "123456")
    assert result.verified is False
    assert result.reason == INVALID_OR_EXPIRED


@pytest.mark.asyncio
async def test_verify_expired_code(otp_service, outbox, session):
    await otp_service.issue(EMAIL)
    code = outbox.last_code(EMAIL)
    record = _live_codes(session)[0]
    record.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    session.commit()

    result = otp_service.verify(EMAIL, code)
    assert result.verified is False
    assert result.reason == INVALID_OR_EXPIRED


@pytest.mark.asyncio
async def test_wrong_code_counts_attempts(otp_service, outbox, session):
    await otp_service.issue(EMAIL)
    code = outbox.last_code(EMAIL)
    wrong = "000000" if code != "000000" else "111111"

    result = otp_service.verify(EMAIL, wrong)
    assert result.verified is False
    assert result.reason == f"Invalid OTP code. {MAX_ATTEMPTS - 1} attempts remaining."
    assert _live_codes(session)[0].attempts == 1


@pytest.mark.asyncio
async def test_lockout_rejects_correct_code(otp_service, outbox):
    await otp_service.issue(EMAIL)
    code = outbox.last_code(EMAIL)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(MAX_ATTEMPTS - 1):
        otp_service.verify(EMAIL, wrong)
    last = otp_service.verify(EMAIL, wrong)
    assert last.reason == "Invalid OTP code. Please request a new OTP."

    result = otp_service.verify(EMAIL, code)
    assert result.verified is False
    assert result.reason == MAX_ATTEMPTS_EXCEEDED


@pytest.mark.asyncio
async def test_delivery_failure_keeps_code(otp_service, outbox, session):
    outbox.fail_with = "SMTP down"
    with pytest.raises(DeliveryException):
        await otp_service.issue(EMAIL)
    assert len(_live_codes(session)) == 1


@pytest.mark.asyncio
async def test_bypass_mode_returns_fixed_code(session, outbox):
    service = OTPService(session, bypass=True, sender=outbox)
    result = await service.issue(EMAIL)

    assert result.channel == "dev"
    assert result.dev_code == DEV_OTP_CODE
    assert outbox.sent == []
    assert service.verify(EMAIL, DEV_OTP_CODE).verified is True


def test_bypass_code_rejected_outside_bypass(otp_service):
    assert otp_service.verify(EMAIL, DEV_OTP_CODE).verified is False


@pytest.mark.asyncio
async def test_cleanup_expired(otp_service, outbox, session):
    await otp_service.issue(EMAIL)
    await otp_service.issue("other@convoyapp.io")
    record = _live_codes(session)[0]
    record.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    session.commit()

    assert otp_service.cleanup_expired() == 1
    assert session.query(OTPCode).count() == 1


@pytest.mark.asyncio
async def test_four_wrong_codes_then_correct_succeeds(otp_service, outbox):
    await otp_service.issue(EMAIL)
    code = outbox.last_code(EMAIL)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(MAX_ATTEMPTS - 1):
        assert otp_service.verify(EMAIL, wrong).verified is False

    assert otp_service.verify(EMAIL, code).verified is True


@pytest.mark.asyncio
async def test_bypass_verify_invalidates_pending_challenges(session, otp_service, outbox):
    await otp_service.issue(EMAIL)
    assert len(_live_codes(session)) == 1

    bypass = OTPService(session, bypass=True, sender=outbox)
    assert bypass.verify(EMAIL, DEV_OTP_CODE).verified is True
    assert _live_codes(session) == []


@pytest.mark.asyncio
async def test_bypass_code_accepted_again_after_use(session, outbox):
    service = OTPService(session, bypass=True, sender=outbox)
    await service.issue(EMAIL)

    assert service.verify(EMAIL, DEV_OTP_CODE).verified is True
    # Bypass does not look at stored challenges, so the fixed code keeps working
    assert service.verify(EMAIL, DEV_OTP_CODE).verified is True
    assert _live_codes(session) == []
