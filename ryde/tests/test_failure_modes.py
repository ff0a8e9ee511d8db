"""
Failure Injection Tests.

Validates resilience against component failures: the image-host circuit
breaker, the expired-OTP sweeper and unhandled errors.
"""

import time
from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select

from ryde.app.core.clock import utcnow
from ryde.app.main import app
from ryde.app.core.reliability import CircuitBreaker, CircuitOpenError
from ryde.app.models.enums import OtpPurpose
from ryde.app.models.otp_code import OtpCode
from ryde.app.services.otp import OtpSweeper
from conftest import API, create_user


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    # Threshold reached
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovery():
    """After the reset timeout one trial call is let through."""
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=30)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    cb.opened_at -= 31
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_circuit_breaker_failed_trial_reopens():
    cb = CircuitBreaker("test", failure_threshold=3, reset_timeout=30)
    cb.state = "OPEN"
    cb.opened_at = time.monotonic() - 60

    async def failing_func():
        raise ValueError("Boom")

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"
    assert time.monotonic() - cb.opened_at < 30


@pytest.mark.asyncio
async def test_sweeper_purges_only_expired_otps(session_factory):
    user = await create_user(session_factory, "jane@x.com")
    now = utcnow()
    async with session_factory() as session:
        session.add_all([
            OtpCode(user_id=user.id, otp="111111", purpose=OtpPurpose.EMAIL_VERIFICATION,
                    created_at=now - timedelta(hours=2), otp_expiry=now - timedelta(hours=1)),
            OtpCode(user_id=user.id, otp="222222", purpose=OtpPurpose.PASSWORD_RESET,
                    created_at=now - timedelta(minutes=20), otp_expiry=now - timedelta(minutes=10)),
            OtpCode(user_id=user.id, otp="333333", purpose=OtpPurpose.EMAIL_VERIFICATION,
                    created_at=now, otp_expiry=now + timedelta(minutes=10)),
        ])
        await session.commit()

    sweeper = OtpSweeper(session_factory, interval_minutes=60)
    assert await sweeper.run_once() == 2

    async with session_factory() as session:
        remaining = (await session.execute(select(OtpCode.otp))).scalars().all()
    assert remaining == ["333333"]

    # nothing left to purge
    assert await sweeper.run_once() == 0


@pytest.mark.asyncio
async def test_sweeper_failure_is_logged_not_raised(caplog):
    def broken_factory():
        raise RuntimeError("database unavailable")

    sweeper = OtpSweeper(broken_factory)
    assert await sweeper.run_once() == 0
    assert "Expired OTP sweep failed" in caplog.text


@pytest.mark.parametrize("now, expected", [
    (datetime(2026, 1, 1, 10, 0, 0), 3600),
    (datetime(2026, 1, 1, 10, 59, 30), 30),
    (datetime(2026, 1, 1, 10, 15, 0), 2700),
])
def test_sweeper_runs_on_the_hour(now, expected):
    sweeper = OtpSweeper(session_factory=None, interval_minutes=60)
    assert sweeper.seconds_until_next_run(now) == pytest.approx(expected)


@pytest.mark.asyncio
async def test_sweeper_start_and_stop():
    sweeper = OtpSweeper(session_factory=None)
    sweeper.start()
    assert sweeper._task is not None
    await sweeper.stop()
    assert sweeper._task is None
    # stopping twice is harmless
    await sweeper.stop()


@pytest.mark.asyncio
async def test_unhandled_error_becomes_500_envelope(client, mocker):
    mocker.patch(
        "ryde.app.services.account_service.AccountService.request_password_reset",
        side_effect=RuntimeError("secret-db-detail"),
    )
    # the server error middleware re-raises after responding
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="https://test") as raw_client:
        response = await raw_client.post(f"{API}/auth/forgot-password", json={"email": "jane@x.com"})
    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "An internal server error occurred"
    assert "secret-db-detail" not in response.text
    assert "Traceback" not in response.text
