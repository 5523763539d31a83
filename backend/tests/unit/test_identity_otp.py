import pytest

from app.domain.identity import otp
from app.domain.identity.exceptions import OtpInvalid
from app.settings import settings


@pytest.mark.asyncio
async def test_issue_and_verify_returns_payload(fake_redis):
    code = await otp.issue(otp.SIGNUP, "a@b.co", {"email": "a@b.co"})
    assert len(code) == 6 and code.isdigit()

    stored = await fake_redis.hgetall("otp:signup:a@b.co")
    assert stored["code"] != code
    assert await fake_redis.ttl("otp:signup:a@b.co") > 0

    assert await otp.verify(otp.SIGNUP, "a@b.co", code) == {"email": "a@b.co"}
    assert await fake_redis.exists("otp:signup:a@b.co") == 0


@pytest.mark.asyncio
async def test_verify_unknown_subject():
    with pytest.raises(OtpInvalid) as exc:
        await otp.verify(otp.SIGNUP, "nobody@b.co", "123456")
    assert exc.value.reason == "OTP expired or not found"


@pytest.mark.asyncio
async def test_wrong_code_counts_attempts(monkeypatch, fake_redis):
    monkeypatch.setattr(settings, "otp_max_attempts", 2)
    code = await otp.issue(otp.PASSWORD_RESET, "kid123", {"user_id": "u1"})
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(2):
        with pytest.raises(OtpInvalid) as exc:
            await otp.verify(otp.PASSWORD_RESET, "kid123", wrong)
        assert exc.value.reason == "Invalid OTP"

    with pytest.raises(OtpInvalid) as exc:
        await otp.verify(otp.PASSWORD_RESET, "kid123", code)
    assert exc.value.reason == "Too many attempts. Please request a new OTP"
    assert await fake_redis.exists("otp:reset:kid123") == 0


@pytest.mark.asyncio
async def test_reissue_replaces_previous_code():
    first = await otp.issue(otp.SIGNUP, "c@d.co")
    second = await otp.issue(otp.SIGNUP, "c@d.co")
    if first != second:
        with pytest.raises(OtpInvalid):
            await otp.verify(otp.SIGNUP, "c@d.co", first)
    assert await otp.verify(otp.SIGNUP, "c@d.co", second) == {}


@pytest.mark.asyncio
async def test_verify_after_expiry_leaves_no_key(fake_redis):
    await otp.issue(otp.SIGNUP, "e@f.co")
    await fake_redis.delete("otp:signup:e@f.co")

    with pytest.raises(OtpInvalid) as exc:
        await otp.verify(otp.SIGNUP, "e@f.co", "123456")

    assert exc.value.reason == "OTP expired or not found"
    assert await fake_redis.exists("otp:signup:e@f.co") == 0


@pytest.mark.asyncio
async def test_wrong_guess_keeps_expiry(fake_redis):
    code = await otp.issue(otp.SIGNUP, "g@h.co")
    wrong = "000000" if code != "000000" else "111111"

    with pytest.raises(OtpInvalid):
        await otp.verify(otp.SIGNUP, "g@h.co", wrong)

    assert await fake_redis.hget("otp:signup:g@h.co", "attempts") == "1"
    assert await fake_redis.ttl("otp:signup:g@h.co") > 0
