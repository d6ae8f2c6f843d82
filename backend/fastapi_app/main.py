from __future__ import annotations

import sys
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# ============================================================
# プロジェクトルートを sys.path に追加
# （Lambda / uvicorn どちらでも core パッケージを解決できるように）
# ============================================================
ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from core.csv_conversion.models import (  # noqa: E402
    ConversionResponse,
    Csv,
    EscapeRequest,
    FromCsvRequest,
    FromJsonTextRequest,
    FromObjectRequest,
    UnescapeRequest,
)
from core.csv_conversion.service import (  # noqa: E402
    InvalidBase64Error,
    decode_csv_b64,
    escape_csv,
    from_csv,
    from_json_text,
    from_object,
    to_csv_string,
    to_json_text,
    to_object,
    unescape_csv,
)

API_VERSION = "0.1.0"

# ============================================================
# API Gateway 側で /csv をプレフィックスとしてルーティングしているため、
# FastAPI には root_path="/csv" を指定し、ルート定義は /v0/... にする
# ============================================================
app = FastAPI(
    title="CSV Conversion API",
    version=API_VERSION,
    description="CSV text <-> table <-> JSON objects conversion API (v0.1)",
    root_path="/csv",
)


def _respond(operation: str, result) -> dict:
    response = ConversionResponse(
        result=result,
        meta={"version": API_VERSION, "operation": operation},
    )
    return response.model_dump()


@app.exception_handler(InvalidBase64Error)
async def invalid_base64_handler(_: Request, exc: InvalidBase64Error) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "INVALID_BASE64",
                "message": str(exc),
            },
            "meta": {
                "version": API_VERSION,
            },
        },
    )


# ------------------------------------------------------------
# フィールド単位
# ------------------------------------------------------------


@app.post("/v0/escape")
async def escape_endpoint(payload: EscapeRequest):
    return _respond("escape", {"value": escape_csv(payload.value)})


@app.post("/v0/unescape")
async def unescape_endpoint(payload: UnescapeRequest):
    return _respond("unescape", {"value": unescape_csv(payload.value)})


# ------------------------------------------------------------
# CSV テキスト <-> 表
# ------------------------------------------------------------


@app.post("/v0/from-csv")
async def from_csv_endpoint(payload: FromCsvRequest):
    if payload.csv_b64 is not None:
        text = decode_csv_b64(payload.csv_b64)
    else:
        text = payload.csv_text
    return _respond("from_csv", from_csv(text).model_dump())


@app.post("/v0/to-csv")
async def to_csv_endpoint(payload: Csv):
    return _respond("to_csv", {"csv_text": to_csv_string(payload)})


# ------------------------------------------------------------
# 表 <-> オブジェクト
# ------------------------------------------------------------


@app.post("/v0/to-object")
async def to_object_endpoint(payload: Csv):
    return _respond("to_object", {"data": to_object(payload)})


@app.post("/v0/from-object")
async def from_object_endpoint(payload: FromObjectRequest):
    return _respond("from_object", from_object(payload.data).model_dump())


# NOTE:
# データセットの JSON 編集 / CSV 編集の切り替え用。
# 不正な JSON はエラーにせず data 列だけの空表を返す
@app.post("/v0/to-json-text")
async def to_json_text_endpoint(payload: Csv):
    return _respond("to_json_text", {"json_text": to_json_text(payload)})


@app.post("/v0/from-json-text")
async def from_json_text_endpoint(payload: FromJsonTextRequest):
    return _respond("from_json_text", from_json_text(payload.json_text).model_dump())
