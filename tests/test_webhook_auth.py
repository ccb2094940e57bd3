import json

import pytest
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request

from sanity_client.clients.errors import InvalidSignatureError
from sanity_client.clients.webhook_auth import (
    MINIMUM_TIMESTAMP,
    SIGNATURE_HEADER_NAME,
    decode_signature_header,
    encode_signature_header,
    is_valid_request,
    is_valid_signature,
)
from sanity_client.config.config import ConfigurationError
from sanity_client.web.server import create_app

SECRET = "test"
TIMESTAMP = 1633519811129
PAYLOAD = '{"_id":"resume"}'
HEADER = "t=1633519811129,v1=tLa470fx7qkLLEcMOcEUFuBbRSkGujyskxrNXcoh0N0"


def _request(body, header):
    headers = {SIGNATURE_HEADER_NAME: header} if header is not None else {}
    builder = EnvironBuilder(method="POST", path="/hook", data=body, headers=headers, content_type="application/json")
    return Request(builder.get_environ())


def test_encode_known_signature():
    assert encode_signature_header(PAYLOAD, TIMESTAMP, SECRET) == HEADER


def test_valid_signature():
    assert is_valid_signature(PAYLOAD, HEADER, SECRET) is True
    assert is_valid_signature(PAYLOAD.encode(), HEADER, SECRET) is True


def test_space_separated_header_is_accepted():
    header = HEADER.replace(",", " ")
    assert is_valid_signature(PAYLOAD, header, SECRET) is True


def test_mismatched_payload_returns_false():
    assert is_valid_signature('{"_id":"invalid"}', HEADER, SECRET) is False


def test_wrong_secret_returns_false():
    assert is_valid_signature(PAYLOAD, HEADER, "other") is False


def test_timestamp_before_floor_is_an_error():
    header = "t=1500000000000,v1=tLa470fx7qkLLEcMOcEUFuBbRSkGujyskxrNXcoh0N0"
    with pytest.raises(InvalidSignatureError, match="millisecond precision"):
        is_valid_signature(PAYLOAD, header, SECRET)


def test_timestamp_at_floor_is_checked():
    header = encode_signature_header(PAYLOAD, MINIMUM_TIMESTAMP, SECRET)
    assert is_valid_signature(PAYLOAD, header, SECRET) is True


@pytest.mark.parametrize(
    "header",
    [
        "",
        "garbage",
        "v1=abc,t=1633519811129",
        "t=abc,v1=abc",
        "t=1633519811129",
        "t=1633519811129,v1=",
        "t=1633519811129,v1=abc,v2=def",
    ],
)
def test_malformed_headers_are_errors(header):
    with pytest.raises(InvalidSignatureError):
        is_valid_signature(PAYLOAD, header, SECRET)


def test_non_ascii_digit_timestamp_is_an_error():
    arabic_indic = str(TIMESTAMP).translate(str.maketrans("0123456789", "٠١٢٣٤٥٦٧٨٩"))
    header = HEADER.replace(str(TIMESTAMP), arabic_indic)
    with pytest.raises(InvalidSignatureError):
        is_valid_signature(PAYLOAD, header, SECRET)


def test_decode_signature_header():
    assert decode_signature_header(HEADER) == ("tLa470fx7qkLLEcMOcEUFuBbRSkGujyskxrNXcoh0N0", TIMESTAMP)


def test_is_valid_request_keeps_body_readable():
    request = _request(PAYLOAD, HEADER)

    assert is_valid_request(request, SECRET) is True
    assert request.get_json() == {"_id": "resume"}
    # A fresh request over the same environ reads the spliced-in body.
    assert Request(request.environ).get_data() == PAYLOAD.encode()


def test_is_valid_request_mismatch():
    assert is_valid_request(_request('{"_id":"invalid"}', HEADER), SECRET) is False


def test_is_valid_request_without_header_is_an_error():
    with pytest.raises(InvalidSignatureError):
        is_valid_request(_request(PAYLOAD, None), SECRET)


@pytest.fixture
def received():
    return []


@pytest.fixture
def app_client(received):
    app = create_app(webhook_secret=SECRET, handler=received.append)
    return app.test_client()


def test_health(app_client):
    assert app_client.get("/health").get_json() == {"ok": True}


def test_webhook_accepts_signed_payload(app_client, received):
    resp = app_client.post(
        "/webhooks/sanity",
        data=PAYLOAD,
        headers={SIGNATURE_HEADER_NAME: HEADER},
        content_type="application/json",
    )

    assert resp.status_code == 200
    assert resp.get_json() == {"received": True, "document_id": "resume"}
    assert received == [{"_id": "resume"}]


def test_webhook_rejects_mismatch(app_client, received):
    resp = app_client.post(
        "/webhooks/sanity",
        data=json.dumps({"_id": "invalid"}),
        headers={SIGNATURE_HEADER_NAME: HEADER},
        content_type="application/json",
    )

    assert resp.status_code == 401
    assert received == []


def test_webhook_rejects_malformed_header(app_client, received):
    resp = app_client.post(
        "/webhooks/sanity",
        data=PAYLOAD,
        headers={SIGNATURE_HEADER_NAME: "nope"},
        content_type="application/json",
    )

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "invalid signature"}
    assert received == []


def test_create_app_requires_secret(monkeypatch):
    monkeypatch.setenv("SANITY_WEBHOOK_SECRET", "")
    monkeypatch.setattr("sanity_client.web.server.load_dotenv", lambda: None)
    with pytest.raises(ConfigurationError):
        create_app()
