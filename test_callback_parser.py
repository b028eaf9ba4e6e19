import json

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from app.utils.callback_parser import parse_fields, parse_raw_body, read_callback

FIELDS = {
    "platform_order_id": "MYU-1",
    "status": "success",
    "payment_id": "PAY-9",
    "random_nr": "123456",
    "signature": "c2ln",
    "total_order_value": "48.00",
    "currency": "0",
}


@pytest.fixture
def echo_client():
    echo = FastAPI()

    @echo.api_route("/callback", methods=["GET", "POST"])
    async def callback(request: Request):
        payload = await read_callback(request)
        return payload.model_dump()

    return TestClient(echo)


def test_parse_fields_maps_provider_names():
    payload = parse_fields(FIELDS)

    assert payload.order_id == "MYU-1"
    assert payload.payment_id == "PAY-9"
    assert payload.random_nr == "123456"
    assert payload.total_order_value == "48.00"
    assert payload.is_success
    assert payload.has_signature


@pytest.mark.parametrize("status, success", [("success", True), (" SUCCESS ", True), ("failed", False), (None, False)])
def test_status_is_case_insensitive(status, success):
    assert parse_fields({"status": status}).is_success is success


def test_body_wins_over_query():
    payload = parse_fields({"status": "failed"}, query={"status": "success", "platform_order_id": "MYU-Q"})

    assert payload.status == "failed"
    assert payload.order_id == "MYU-Q"


def test_order_id_falls_back_to_custom_params():
    payload = parse_fields({"custom_params": json.dumps({"orderId": "MYU-CP", "courseId": 3})})

    assert payload.order_id == "MYU-CP"
    assert payload.custom_params["courseId"] == 3


def test_blank_order_id_uses_custom_params():
    payload = parse_fields({"platform_order_id": "  ", "custom_params": '{"orderId": "MYU-CP"}'})
    assert payload.order_id == "MYU-CP"


def test_broken_custom_params_are_ignored():
    payload = parse_fields({"custom_params": "{not json"})

    assert payload.custom_params == {}
    assert payload.order_id is None


def test_nested_json_values_are_kept_as_text():
    payload = parse_fields({"custom_params": {"orderId": "MYU-D"}})
    assert payload.order_id == "MYU-D"


@pytest.mark.parametrize(
    "text, expected",
    [
        ('{"status": "success"}', {"status": "success"}),
        ("status=success&platform_order_id=MYU-1", {"status": "success", "platform_order_id": "MYU-1"}),
        ("", {}),
        ("[1, 2]", {"[1, 2]": ""}),
    ],
)
def test_parse_raw_body(text, expected):
    assert parse_raw_body(text) == expected


def test_reads_urlencoded_form(echo_client):
    data = echo_client.post("/callback", data=FIELDS).json()

    assert data["encoding"] == "form"
    assert data["order_id"] == "MYU-1"


def test_reads_multipart_form(echo_client):
    data = echo_client.post(
        "/callback",
        data=FIELDS,
        files={"receipt": ("receipt.txt", b"ignored", "text/plain")},
    ).json()

    assert data["encoding"] == "multipart"
    assert data["signature"] == "c2ln"
    assert "receipt" not in data["fields"]


def test_reads_json_body(echo_client):
    data = echo_client.post("/callback", json=FIELDS).json()

    assert data["encoding"] == "json"
    assert data["payment_id"] == "PAY-9"


def test_reads_raw_query_string_body(echo_client):
    data = echo_client.post(
        "/callback",
        content="status=success&platform_order_id=MYU-RAW",
        headers={"content-type": "text/plain"},
    ).json()

    assert data["encoding"] == "raw"
    assert data["order_id"] == "MYU-RAW"


def test_reads_raw_json_body(echo_client):
    data = echo_client.post(
        "/callback",
        content=json.dumps(FIELDS),
        headers={"content-type": "text/plain"},
    ).json()

    assert data["encoding"] == "raw"
    assert data["order_id"] == "MYU-1"


def test_reads_query_only(echo_client):
    data = echo_client.get("/callback", params={"platform_order_id": "MYU-G", "status": "failed"}).json()

    assert data["encoding"] == "query"
    assert data["order_id"] == "MYU-G"
    assert data["status"] == "failed"
