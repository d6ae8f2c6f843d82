import base64
import json

from fastapi.testclient import TestClient

from backend.fastapi_app.lambda_handler import handler, resolve_base_path
from backend.fastapi_app.main import app

client = TestClient(app)


def _b64(s: str) -> str:
    """テスト用 Base64 ヘルパー"""
    return base64.b64encode(s.encode("utf-8")).decode("ascii")


def test_escape_endpoint():
    r = client.post("/v0/escape", json={"value": "a,b"})
    assert r.status_code == 200

    data = r.json()
    assert data["result"] == {"value": '"a,b"'}
    assert data["meta"] == {"version": "0.1.0", "operation": "escape"}


def test_escape_endpoint_accepts_scalars():
    assert client.post("/v0/escape", json={"value": 12}).json()["result"]["value"] == "12"
    assert client.post("/v0/escape", json={"value": True}).json()["result"]["value"] == "true"


def test_unescape_endpoint():
    r = client.post("/v0/unescape", json={"value": '"He said ""hi"""'})
    assert r.status_code == 200
    assert r.json()["result"] == {"value": 'He said "hi"'}


def test_from_csv_with_text():
    r = client.post("/v0/from-csv", json={"csv_text": "name,age\nAlice,30\nBob,25"})
    assert r.status_code == 200

    result = r.json()["result"]
    assert result["columns"] == ["name", "age"]
    assert result["rows"] == [
        {"name": "Alice", "age": "30"},
        {"name": "Bob", "age": "25"},
    ]


def test_from_csv_with_base64():
    r = client.post("/v0/from-csv", json={"csv_b64": _b64("名前,値\n太郎,1\n")})
    assert r.status_code == 200

    result = r.json()["result"]
    assert result["columns"] == ["名前", "値"]
    assert result["rows"] == [{"名前": "太郎", "値": "1"}]


def test_from_csv_invalid_base64_returns_400():
    r = client.post("/v0/from-csv", json={"csv_b64": "%%%"})
    assert r.status_code == 400

    data = r.json()
    assert data["error"]["code"] == "INVALID_BASE64"
    assert data["meta"]["version"] == "0.1.0"


def test_from_csv_requires_exactly_one_source():
    assert client.post("/v0/from-csv", json={}).status_code == 422
    both = {"csv_text": "a\n1", "csv_b64": _b64("a\n1")}
    assert client.post("/v0/from-csv", json=both).status_code == 422


def test_to_csv_endpoint():
    payload = {"columns": ["name"], "rows": [{"name": "Alice"}, {"name": "Bob, Jr."}]}
    r = client.post("/v0/to-csv", json=payload)
    assert r.status_code == 200
    assert r.json()["result"] == {"csv_text": 'name\nAlice\n"Bob, Jr."'}


def test_to_object_endpoint_parses_nested_json():
    payload = {"columns": ["id", "user"], "rows": [{"id": "1", "user": '{"name":"Alice"}'}]}
    r = client.post("/v0/to-object", json=payload)
    assert r.status_code == 200
    assert r.json()["result"] == {"data": [{"id": "1", "user": {"name": "Alice"}}]}


def test_from_object_endpoint():
    r = client.post("/v0/from-object", json={"data": [1, "x", {"a": 1}]})
    assert r.status_code == 200

    result = r.json()["result"]
    assert result["columns"] == ["data", "a"]
    assert result["rows"] == [
        {"data": "1", "a": ""},
        {"data": "x", "a": ""},
        {"data": "", "a": "1"},
    ]


def test_json_text_endpoints():
    r = client.post("/v0/to-json-text", json={"columns": ["a"], "rows": [{"a": "1"}]})
    assert r.status_code == 200
    assert r.json()["result"] == {"json_text": '[\n   {\n      "a": "1"\n   }\n]'}

    r = client.post("/v0/from-json-text", json={"json_text": "{oops"})
    assert r.status_code == 200
    assert r.json()["result"] == {"columns": ["data"], "rows": []}


def test_lambda_base_path_strips_named_stage_only():
    assert resolve_base_path({"requestContext": {"stage": "dev"}}) == "/dev"
    assert resolve_base_path({"requestContext": {"stage": "$default"}}) is None
    assert resolve_base_path({}) is None


def test_to_object_endpoint_leaves_non_json_constants_as_text():
    payload = {"columns": ["a"], "rows": [{"a": "[Infinity]"}]}
    r = client.post("/v0/to-object", json=payload)
    assert r.status_code == 200
    assert r.json()["result"] == {"data": [{"a": "[Infinity]"}]}


def _http_api_event(path: str, body: dict, stage: str = "dev") -> dict:
    """API Gateway HTTP API (payload v2.0) 形式の最小イベント"""
    raw_path = f"/{stage}{path}"
    return {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": raw_path,
        "rawQueryString": "",
        "cookies": [],
        "headers": {
            "content-type": "application/json",
            "host": "example.execute-api.ap-northeast-1.amazonaws.com",
        },
        "requestContext": {
            "accountId": "123456789012",
            "apiId": "example",
            "domainName": "example.execute-api.ap-northeast-1.amazonaws.com",
            "domainPrefix": "example",
            "http": {
                "method": "POST",
                "path": raw_path,
                "protocol": "HTTP/1.1",
                "sourceIp": "127.0.0.1",
                "userAgent": "pytest",
            },
            "requestId": "req-1",
            "routeKey": "$default",
            "stage": stage,
            "time": "19/Oct/2026:00:00:00 +0000",
            "timeEpoch": 0,
        },
        "body": json.dumps(body),
        "isBase64Encoded": False,
    }


def test_lambda_handler_routes_through_stage_and_root_path(capsys):
    event = _http_api_event("/csv/v0/escape", {"value": "a,b"})

    response = handler(event, {})

    assert response["statusCode"] == 200
    assert json.loads(response["body"])["result"] == {"value": '"a,b"'}

    # 診断ログが 1 行 JSON で出ている
    diag = json.loads(capsys.readouterr().out.strip().splitlines()[0])
    assert diag["diag"] == "csv_conversion_request"
    assert diag["base_path"] == "/dev"
