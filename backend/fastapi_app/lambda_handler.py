from __future__ import annotations

import json
from typing import Optional

from mangum import Mangum

from backend.fastapi_app.main import app


def _safe_get(d, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def resolve_base_path(event: dict) -> Optional[str]:
    """API Gateway のステージ名（/dev, /prod）を剥がすためのベースパスを返す

    $default ステージの場合はパスにステージ名が入らないので None。
    """
    stage = _safe_get(event, "requestContext", "stage", default=None)
    if not stage or stage == "$default":
        return None
    return f"/{stage}"


def handler(event, context):
    base_path = resolve_base_path(event)

    print(
        json.dumps(
            {
                "diag": "csv_conversion_request",
                "stage": _safe_get(event, "requestContext", "stage", default=None),
                "method": _safe_get(event, "requestContext", "http", "method", default=None),
                "rawPath": event.get("rawPath"),
                "requestContext.http.path": _safe_get(
                    event, "requestContext", "http", "path", default=None
                ),
                "base_path": base_path,
            },
            ensure_ascii=False,
        )
    )

    asgi = Mangum(app, api_gateway_base_path=base_path)
    return asgi(event, context)
