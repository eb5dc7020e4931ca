import hashlib
from urllib.parse import parse_qsl

import pytest

from event_exporter import signing
from event_exporter.config import RunConfig

FIXED_NOW = 1_700_000_000


def _scaled(**kw):
    base = dict(
        output_root="/tmp/x",
        scale_expiry=True,
        seconds_per_day=10.0,
        min_scaled_expiry_seconds=30,
        max_scaled_expiry_seconds=180,
    )
    base.update(kw)
    return RunConfig(**base)


# ---------- param_str ----------


def test_param_str_uniform_rule():
    assert signing.param_str(None) == ""
    assert signing.param_str(True) == "true"
    assert signing.param_str(False) == "false"
    assert signing.param_str(12) == "12"
    assert signing.param_str("a b") == "a b"


# ---------- compute_expiry_seconds ----------


def test_unscaled_expiry_ignores_window():
    cfg = RunConfig(output_root="/tmp/x", unscaled_expiry_seconds=45)
    assert signing.compute_expiry_seconds(cfg, 0) == 45
    assert signing.compute_expiry_seconds(cfg, 400) == 45


def test_scaled_expiry_clamps_to_min_for_zero_window():
    assert signing.compute_expiry_seconds(_scaled(), 0) == 30


def test_scaled_expiry_inside_bounds():
    # 10 s/day * 7 days
    assert signing.compute_expiry_seconds(_scaled(), 7) == 70


def test_scaled_expiry_clamps_to_max():
    assert signing.compute_expiry_seconds(_scaled(), 365) == 180


def test_scaled_expiry_rounds_half_up():
    cfg = _scaled(seconds_per_day=12.5)
    # 12.5 * 4 = 50.0, 12.5 * 5 = 62.5
    assert signing.compute_expiry_seconds(cfg, 4) == 50
    assert signing.compute_expiry_seconds(cfg, 5) == 63


def test_scaled_expiry_is_monotonic_and_bounded():
    cfg = _scaled(seconds_per_day=3.7)
    values = [signing.compute_expiry_seconds(cfg, d) for d in range(0, 120)]
    assert values == sorted(values)
    assert all(30 <= v <= 180 for v in values)


def test_negative_window_rejected():
    with pytest.raises(ValueError):
        signing.compute_expiry_seconds(_scaled(), -1)


def test_expiry_timestamp_is_absolute():
    cfg = RunConfig(output_root="/tmp/x")
    assert signing.expiry_timestamp(cfg, 3, lambda: FIXED_NOW + 0.9) == FIXED_NOW + 60


# ---------- digest_signature ----------


def test_digest_signature_sorted_by_key_without_separator():
    params = {"to_date": "2021-01-02", "api_key": "k", "expire": "10", "from_date": "2021-01-01"}
    expected_payload = "api_key=kexpire=10from_date=2021-01-01to_date=2021-01-02secret"
    assert signing.digest_signature(params, "secret") == hashlib.md5(
        expected_payload.encode("utf-8")
    ).hexdigest()


def test_digest_signature_independent_of_insertion_order():
    a = {"b": "2", "a": "1", "c": "3"}
    b = {"c": "3", "a": "1", "b": "2"}
    assert signing.digest_signature(a, "s") == signing.digest_signature(b, "s")


def test_digest_signature_sorts_by_key_not_by_pair():
    # 'a-b=' sorts before 'a=' as a pair string, but 'a' < 'a-b' as a key
    params = {"a-b": "2", "a": "1"}
    expected = hashlib.md5(b"a=1a-b=2s").hexdigest()
    assert signing.digest_signature(params, "s") == expected


def test_digest_signature_excludes_sig():
    params = {"a": "1"}
    assert signing.digest_signature(
        {**params, "sig": "old"}, "s"
    ) == signing.digest_signature(params, "s")


# ---------- RequestSigner ----------


def test_sign_adds_expire_api_key_and_sig(credentials, capture_log):
    cfg = RunConfig(output_root="/tmp/x")
    signer = signing.RequestSigner(credentials, cfg, capture_log, now=lambda: FIXED_NOW)
    query = dict(parse_qsl(signer.sign("/events/names", {"type": "general"})))

    assert query["type"] == "general"
    assert query["api_key"] == "test-key"
    assert query["expire"] == str(FIXED_NOW + 60)
    expected = signing.digest_signature(
        {"type": "general", "api_key": "test-key", "expire": str(FIXED_NOW + 60)},
        "s3cr3t",
    )
    assert query["sig"] == expected
    assert "s3cr3t" not in signer.sign("/events/names", {"type": "general"})
    assert "s3cr3t" not in capture_log.text()


def test_sign_is_deterministic_for_fixed_expire(credentials, capture_log):
    cfg = RunConfig(output_root="/tmp/x")
    s1 = signing.RequestSigner(credentials, cfg, capture_log, now=lambda: 1)
    s2 = signing.RequestSigner(credentials, cfg, capture_log, now=lambda: 999)
    p1 = {"expire": 123, "from_date": "2021-01-01", "to_date": "2021-01-02"}
    p2 = {"to_date": "2021-01-02", "expire": 123, "from_date": "2021-01-01"}
    q1 = dict(parse_qsl(s1.sign("/export", p1)))
    q2 = dict(parse_qsl(s2.sign("/export", p2)))
    assert q1 == q2
    assert q1["expire"] == "123"


def test_sign_scales_expiry_with_window(credentials, capture_log):
    signer = signing.RequestSigner(
        credentials, _scaled(), capture_log, now=lambda: FIXED_NOW
    )
    query = dict(parse_qsl(signer.sign("/export", {}, window_days=7)))
    assert query["expire"] == str(FIXED_NOW + 70)


def test_sign_stringifies_scalars_consistently(credentials, capture_log):
    cfg = RunConfig(output_root="/tmp/x")
    signer = signing.RequestSigner(credentials, cfg, capture_log, now=lambda: FIXED_NOW)
    params = signer.signed_params("/x", {"flag": True, "none": None, "n": 5})
    assert params["flag"] == "true" and params["none"] == "" and params["n"] == "5"
    assert params["sig"] == signing.digest_signature(
        {k: v for k, v in params.items() if k != "sig"}, "s3cr3t"
    )


@pytest.mark.parametrize("reserved", ["api_key", "sig"])
def test_sign_rejects_reserved_params(credentials, capture_log, reserved):
    signer = signing.RequestSigner(
        credentials, RunConfig(output_root="/tmp/x"), capture_log
    )
    with pytest.raises(ValueError):
        signer.sign("/export", {reserved: "x"})


def test_sign_encodes_json_event_filter(credentials, capture_log):
    signer = signing.RequestSigner(
        credentials, RunConfig(output_root="/tmp/x"), capture_log, now=lambda: FIXED_NOW
    )
    encoded = signer.sign("/export", {"event": '["Sign Up", "Login"]'})
    assert "event=%5B%22Sign+Up%22%2C+%22Login%22%5D" in encoded
    assert dict(parse_qsl(encoded))["event"] == '["Sign Up", "Login"]'
