"""
OTP verification and password management tests.

Covers verify-email / verify-otp, forgot / reset password and
change password.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from ryde.app.core.clock import utcnow
from ryde.app.models.enums import OtpPurpose
from ryde.app.models.otp_code import OtpCode
from conftest import API, create_user, fetch_user, sign_in


async def _otp_rows(session_factory, user_id):
    async with session_factory() as session:
        result = await session.execute(select(OtpCode).where(OtpCode.user_id == user_id))
        return list(result.scalars().all())


async def _insert_otp(session_factory, user_id, code, purpose=OtpPurpose.EMAIL_VERIFICATION, expires_in=timedelta(minutes=10)):
    now = utcnow()
    async with session_factory() as session:
        session.add(OtpCode(
            user_id=user_id,
            otp=code,
            purpose=purpose,
            created_at=now,
            otp_expiry=now + expires_in,
        ))
        await session.commit()


@pytest.mark.asyncio
async def test_verify_email_then_otp_marks_user_verified(client, session_factory, mailer):
    user = await create_user(session_factory, "new@x.com", is_verified=False)

    response = await client.post(f"{API}/auth/verify-email", json={"email": "new@x.com"})
    assert response.status_code == 200
    assert response.json()["message"] == "Verification OTP sent to email"

    otp = mailer.last_otp("new@x.com")
    assert otp is not None
    assert len(otp) == 6
    assert otp[0] != "0"
    assert mailer.sent[-1]["kind"] == "verification"

    response = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": otp})
    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully"
    assert response.json()["data"] == {"purpose": "email_verification"}

    stored = await fetch_user(session_factory, "new@x.com")
    assert stored.is_verified is True
    assert await _otp_rows(session_factory, user.id) == []


@pytest.mark.asyncio
async def test_consumed_otp_cannot_be_reused(client, session_factory, mailer):
    await create_user(session_factory, "new@x.com", is_verified=False)
    await client.post(f"{API}/auth/verify-email", json={"email": "new@x.com"})
    otp = mailer.last_otp("new@x.com")

    first = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": otp})
    assert first.status_code == 200

    again = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": otp})
    assert again.status_code == 404
    assert again.json()["message"] == "No OTP found"


@pytest.mark.asyncio
async def test_expired_otp_rejected(client, session_factory):
    user = await create_user(session_factory, "new@x.com", is_verified=False)
    await _insert_otp(session_factory, user.id, "123456", expires_in=timedelta(minutes=-1))

    response = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": "123456"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"

    stored = await fetch_user(session_factory, "new@x.com")
    assert stored.is_verified is False


@pytest.mark.asyncio
async def test_wrong_otp_gets_same_message_as_expired(client, session_factory):
    user = await create_user(session_factory, "new@x.com", is_verified=False)
    await _insert_otp(session_factory, user.id, "123456")

    response = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": "654321"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"
    # a failed attempt leaves the code in place
    assert len(await _otp_rows(session_factory, user.id)) == 1


@pytest.mark.asyncio
async def test_verify_otp_without_any_code(client, session_factory):
    await create_user(session_factory, "new@x.com", is_verified=False)
    response = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": "123456"})
    assert response.status_code == 404
    assert response.json()["message"] == "No OTP found"


@pytest.mark.asyncio
async def test_only_latest_otp_is_accepted(client, session_factory, mailer):
    user = await create_user(session_factory, "new@x.com", is_verified=False)
    await _insert_otp(session_factory, user.id, "111111")
    await _insert_otp(session_factory, user.id, "222222")

    older = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": "111111"})
    assert older.status_code == 400

    latest = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": "222222"})
    assert latest.status_code == 200


@pytest.mark.asyncio
async def test_verify_email_unknown_user(client, mailer):
    response = await client.post(f"{API}/auth/verify-email", json={"email": "ghost@x.com"})
    assert response.status_code == 404
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_verify_email_missing_email(client):
    response = await client.post(f"{API}/auth/verify-email", json={})
    assert response.status_code == 400
    assert response.json()["message"] == "Missing required fields: email"


@pytest.mark.asyncio
async def test_otp_email_failure_reports_bad_gateway(client, session_factory, mailer):
    await create_user(session_factory, "new@x.com", is_verified=False)
    mailer.fail = True

    response = await client.post(f"{API}/auth/verify-email", json={"email": "new@x.com"})
    assert response.status_code == 502
    body = response.json()
    assert body["success"] is False
    assert body["data"]["error_code"] == "ERR_EMAIL_DELIVERY"
    assert body["message"] == "Could not send email, please try again later"
    assert "SMTP unavailable" not in response.text


# Forgot / reset password

@pytest.mark.asyncio
async def test_forgot_password_otp_does_not_verify_account(client, session_factory, mailer):
    await create_user(session_factory, "new@x.com", is_verified=False)

    response = await client.post(f"{API}/auth/forgot-password", json={"email": "new@x.com"})
    assert response.status_code == 200
    assert mailer.sent[-1]["kind"] == "forgot_password"

    otp = mailer.last_otp("new@x.com")
    response = await client.post(f"{API}/auth/verify-otp", json={"email": "new@x.com", "otp": otp})
    assert response.status_code == 200
    assert response.json()["message"] == "OTP verified successfully"
    assert response.json()["data"] == {"purpose": "password_reset"}

    stored = await fetch_user(session_factory, "new@x.com")
    assert stored.is_verified is False


@pytest.mark.asyncio
async def test_reset_password_for_verified_user(client, session_factory, mailer):
    await create_user(session_factory, "jane@x.com")
    await client.post(f"{API}/auth/forgot-password", json={"email": "jane@x.com"})
    otp = mailer.last_otp("jane@x.com")
    await client.post(f"{API}/auth/verify-otp", json={"email": "jane@x.com", "otp": otp})

    response = await client.post(
        f"{API}/auth/reset-password",
        json={"email": "jane@x.com", "newPassword": "BrandNew42"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Password reset successfully"

    await sign_in(client, "jane@x.com", "BrandNew42")
    old = await client.post(f"{API}/auth/sign-in", json={"email": "jane@x.com", "password": "Secret123"})
    assert old.status_code == 401


@pytest.mark.asyncio
async def test_reset_password_requires_verified_user(client, session_factory):
    await create_user(session_factory, "new@x.com", is_verified=False)
    response = await client.post(
        f"{API}/auth/reset-password",
        json={"email": "new@x.com", "newPassword": "BrandNew42"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "User is not verified"


@pytest.mark.asyncio
async def test_reset_password_missing_new_password(client, session_factory):
    await create_user(session_factory, "jane@x.com")
    response = await client.post(f"{API}/auth/reset-password", json={"email": "jane@x.com"})
    assert response.status_code == 400
    assert response.json()["message"] == "Missing required fields: newPassword"


@pytest.mark.asyncio
async def test_reset_password_rejects_overlong_password(client, session_factory):
    await create_user(session_factory, "jane@x.com")
    response = await client.post(
        f"{API}/auth/reset-password",
        json={"email": "jane@x.com", "newPassword": "x" * 73},
    )
    assert response.status_code == 400
    assert response.json()["data"]["error_code"] == "ERR_VALIDATION"


# Change password

@pytest.mark.asyncio
async def test_change_password_with_wrong_current_password(client, session_factory):
    await create_user(session_factory, "jane@x.com")
    response = await client.post(
        f"{API}/auth/change-password",
        json={"email": "jane@x.com", "currentPassword": "wrong", "newPassword": "BrandNew42"},
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Current password is incorrect"
    await sign_in(client, "jane@x.com", "Secret123")


@pytest.mark.asyncio
async def test_change_password_success(client, session_factory):
    await create_user(session_factory, "jane@x.com")
    response = await client.post(
        f"{API}/auth/change-password",
        json={"email": "jane@x.com", "currentPassword": "Secret123", "newPassword": "BrandNew42"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Password changed successfully"
    await sign_in(client, "jane@x.com", "BrandNew42")


@pytest.mark.asyncio
async def test_change_password_unknown_user(client):
    response = await client.post(
        f"{API}/auth/change-password",
        json={"email": "ghost@x.com", "currentPassword": "a", "newPassword": "b"},
    )
    assert response.status_code == 404
