from __future__ import annotations

import base64
import json
import math
from datetime import date, datetime, time
from typing import Any, Dict, List

from .models import Csv, CsvRow


class InvalidBase64Error(Exception):
    """Base64 デコード失敗時に投げる独自例外"""

    pass


# オブジェクト配列化する際、スカラー要素を格納する列名
DATA_COLUMN = "data"

# JSON として解釈できなかった場合のデータセット既定形
_PLACEHOLDER_COLUMNS = [DATA_COLUMN]

# バックスラッシュエスケープの対応表（適用順に意味がある）
_CONTROL_ESCAPES = (
    ("\t", "\\t"),
    ("\n", "\\n"),
    ("\r", "\\r"),
)


# ---------------------------------------------------------------------------
# Base64 / テキストユーティリティ
# ---------------------------------------------------------------------------


def decode_csv_b64(csv_b64: str) -> str:
    """Base64 -> UTF-8 テキストに変換

    - 先に空白類（スペース・改行・タブなど）をすべて削除
    - そのうえで validate=True で厳密に Base64 を検証
    """
    try:
        compact = "".join(csv_b64.split())
        raw = base64.b64decode(compact, validate=True)
        return raw.decode("utf-8")
    except ValueError as exc:
        raise InvalidBase64Error("csv_b64 is not valid Base64 UTF-8 text") from exc


def _to_text(value: Any) -> str:
    """スカラー値を CSV セル用の文字列表現にする

    数値は整数値なら小数部なし（1.0 -> "1"）、真偽値は true / false。
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return _float_text(value)
    return str(value)


def _float_text(value: float) -> str:
    """repr の指数表記を 1e-7 / 1e+21 形式に揃える

    指数が -6 以上なら指数表記を使わず 0.00001 のように展開する。
    """
    text = repr(value)
    if "e" not in text:
        return text

    mantissa, exp_text = text.split("e")
    exp = int(exp_text)
    if -7 < exp < 0:
        sign = "-" if mantissa.startswith("-") else ""
        digits = mantissa.lstrip("-").replace(".", "")
        return f"{sign}0.{'0' * (-exp - 1)}{digits}"
    return f"{mantissa}e{exp:+d}"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return list(value)
    return str(value)


def _finite_or_none(value: Any) -> Any:
    """NaN / Infinity は JSON に存在しないので null にする"""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _finite_or_none(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite_or_none(v) for v in value]
    return value


def _to_json(value: Any) -> str:
    return json.dumps(
        _finite_or_none(value),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
        default=_json_default,
    )


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _loads_strict(text: str) -> Any:
    """NaN / Infinity / -Infinity を受け付けない json.loads"""
    return json.loads(text, parse_constant=_reject_constant)


# ---------------------------------------------------------------------------
# フィールド単位のエスケープ
# ---------------------------------------------------------------------------


def escape_csv(value: Any) -> str:
    """値を CSV のセルとして安全に埋め込める形にする

    1. 文字列化
    2. タブ / 改行 / CR を \\t \\n \\r の 2 文字に置換
    3. カンマかダブルクォートを含む場合のみ全体をクォートし、内部の " を "" にする
    """
    text = _to_text(value)
    for raw, escaped in _CONTROL_ESCAPES:
        text = text.replace(raw, escaped)

    if "," in text or '"' in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def _strip_quotes(text: str) -> str:
    if text.startswith('"') and text.endswith('"'):
        return text[1:-1].replace('""', '"')
    return text


def unescape_csv(value: str) -> str:
    """escape_csv の逆変換

    第三者が書いた \\t 等の 2 文字列もエスケープとみなして復元する点に注意。
    """
    text = _strip_quotes(value.strip())
    for raw, escaped in _CONTROL_ESCAPES:
        text = text.replace(escaped, raw)
    return text


def unquote_field(value: str) -> str:
    """前後空白を除去し、外側のクォートを外す（\\t 等の復元はしない）"""
    return _strip_quotes(value.strip())


def split_csv_line(line: str) -> List[str]:
    """1 行をカンマで分割する（クォート内のカンマは区切りとみなさない）

    " を見るたびに「クォート内」フラグを反転させる 1 パス走査。
    "" は 2 回反転するので状態は変わらない。
    クォートが閉じていない場合、残りはすべて最後のフィールドに入る。
    """
    fields: List[str] = []
    buf: List[str] = []
    in_quotes = False

    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
            buf.append(ch)
        elif ch == "," and not in_quotes:
            fields.append("".join(buf))
            buf = []
        else:
            buf.append(ch)

    fields.append("".join(buf))
    return fields


# ---------------------------------------------------------------------------
# CSV テキスト <-> 表
# ---------------------------------------------------------------------------


def from_csv(csv_string: str) -> Csv:
    """CSV テキストを Csv に変換する

    - \\n でのみ行分割する（\\r\\n の正規化はしない）
    - 1 行目はヘッダ
    - 長さ 0 の行は読み飛ばす
    - 値が列より少なければ末尾の列はその行に存在しない、多ければ余りは捨てる
    - 列名が重複した場合は後勝ち
    """
    lines = csv_string.split("\n")
    columns = [unquote_field(f) for f in split_csv_line(lines[0])]

    rows: List[CsvRow] = []
    for line in lines[1:]:
        if len(line) == 0:
            continue
        values = [unquote_field(f) for f in split_csv_line(line)]
        row: CsvRow = {}
        for column, value in zip(columns, values):
            row[column] = value
        rows.append(row)

    return Csv(columns=columns, rows=rows)


def to_csv_string(data: Csv) -> str:
    """Csv を CSV テキストに変換する（末尾改行なし、欠損値は空文字）"""
    lines = [",".join(escape_csv(c) for c in data.columns)]
    for row in data.rows:
        lines.append(",".join(escape_csv(row.get(c)) for c in data.columns))
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# 表 <-> オブジェクト配列
# ---------------------------------------------------------------------------


def _looks_like_json(text: str) -> bool:
    return (text.startswith("{") and text.endswith("}")) or (
        text.startswith("[") and text.endswith("]")
    )


def _cell_to_value(raw: Any) -> Any:
    """セル値を復元する。{...} / [...] の形なら JSON として読めるか試す。"""
    if not raw:
        return ""

    unescaped = unescape_csv(_to_text(raw))
    trimmed = unescaped.strip()
    if _looks_like_json(trimmed):
        try:
            return _loads_strict(trimmed)
        except ValueError:
            return unescaped
    return unescaped


def to_object(data: Csv) -> List[Dict[str, Any]]:
    """各行を columns 順のキーを持つ dict にする（欠損は空文字）"""
    return [
        {column: _cell_to_value(row.get(column)) for column in data.columns}
        for row in data.rows
    ]


def _as_record(item: Any) -> Dict[str, Any]:
    if item is None:
        return {DATA_COLUMN: ""}
    if not isinstance(item, dict):
        return {DATA_COLUMN: item}
    return {str(k): v for k, v in item.items()}


def _value_to_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, bool, int, float)):
        return _to_text(value)
    # dict / list / 日付など非スカラーは JSON 文字列としてセルに入れる
    return _to_json(value)


def from_object(data: Any) -> Csv:
    """任意の JSON 風の値を表形式に正規化する

    - 配列でなければ 1 要素の配列として扱う
    - None は {"data": ""}、dict 以外（配列含む）は {"data": 要素}
    - 列は全要素のキーを初出順に並べたもの
    """
    if isinstance(data, (list, tuple)):
        items = list(data)
    else:
        items = [data]

    records = [_as_record(item) for item in items]

    columns: List[str] = []
    seen = set()
    for record in records:
        for key in record:
            if key not in seen:
                seen.add(key)
                columns.append(key)

    rows: List[CsvRow] = [
        {column: _value_to_cell(record.get(column)) for column in columns}
        for record in records
    ]
    return Csv(columns=columns, rows=rows)


# ---------------------------------------------------------------------------
# データセット（JSON 編集 <-> CSV 編集 の切り替え）
# ---------------------------------------------------------------------------


def to_json_text(data: Csv) -> str:
    """表をオブジェクト配列にし、インデント 3 の JSON テキストにする"""
    return json.dumps(to_object(data), indent=3, ensure_ascii=False)


def from_json_text(text: str) -> Csv:
    """JSON テキストを表にする。JSON として不正なら data 列だけの空表を返す。"""
    try:
        data = _loads_strict(text)
    except ValueError:
        return Csv(columns=list(_PLACEHOLDER_COLUMNS), rows=[])
    return from_object(data)
