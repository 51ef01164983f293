import pytest

from gatepass.security.proofs import operations
from gatepass.security.proofs.errors import MalformedPayloadError

SECRET = b"\x01" * 32


def test_generate_secret_has_enough_entropy():
    first = operations.generate_secret()
    second = operations.generate_secret()
    assert len(first) >= 16
    assert first != second


def test_generate_secret_refuses_short_secrets():
    with pytest.raises(ValueError):
        operations.generate_secret(8)


def test_rfc6238_sha256_vector():
    # RFC 6238 appendix B, SHA-256, T = 59s
    secret = b"12345678901234567890123456789012"
    assert operations.current_proof(secret, 59, window_seconds=30, digits=8) == "46119246"


@pytest.mark.parametrize(
    "now, expected",
    [(0, 0), (29.999, 0), (30, 1), (3005, 100), (-1, -1)],
)
def test_window_index(now, expected):
    assert operations.window_index(now, 30) == expected


def test_proof_is_stable_within_a_window():
    assert operations.current_proof(SECRET, 3000) == operations.current_proof(SECRET, 3029.9)


def test_proof_changes_across_windows():
    proofs = {operations.current_proof(SECRET, 3000 + 30 * i) for i in range(20)}
    assert len(proofs) == 20


def test_proof_depends_on_secret():
    assert operations.current_proof(SECRET, 3000) != operations.current_proof(b"\x02" * 32, 3000)


@pytest.mark.parametrize("digits", [6, 8, 9])
def test_proof_length(digits):
    proof = operations.current_proof(SECRET, 3000, digits=digits)
    assert len(proof) == digits
    assert proof.isdigit()


def test_seconds_until_rotation():
    assert operations.seconds_until_rotation(3000) == 30
    assert operations.seconds_until_rotation(3025) == 5


def test_matches_any():
    assert operations.matches_any(["11111111", "22222222", "33333333"], "33333333")
    assert not operations.matches_any(["11111111", "22222222"], "1111111")
    assert not operations.matches_any([], "11111111")


def test_qr_payload_round_trip():
    payload = operations.encode_qr_payload("TKT-ABC", "12345678")
    assert payload == "GP1:TKT-ABC:12345678"
    assert operations.decode_qr_payload(payload) == ("TKT-ABC", "12345678")


def test_qr_payload_rejects_separator_in_ticket_id():
    with pytest.raises(ValueError):
        operations.encode_qr_payload("TKT:1", "12345678")


@pytest.mark.parametrize(
    "data",
    ["", "garbage", "GP1:TKT-ABC", "GP2:TKT-ABC:12345678", "GP1::12345678", "GP1:TKT-ABC:", "GP1:a:b:c"],
)
def test_decode_qr_payload_rejects_malformed_data(data):
    with pytest.raises(MalformedPayloadError):
        operations.decode_qr_payload(data)
