from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict


# 行の値は基本 str だが、呼び出し側が数値/真偽値を直接入れるケースも許容する
CsvCell = Union[str, bool, int, float, None]
CsvRow = Dict[str, CsvCell]


class Csv(BaseModel):
    """
    表形式の CSV データ。

    - columns: 列名（順序に意味がある）
    - rows   : 列名 -> 値 のマッピング（全列が揃っている保証はない）
    """

    columns: List[str] = Field(default_factory=list)
    rows: List[CsvRow] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "columns": ["name", "age"],
                "rows": [{"name": "Alice", "age": "30"}, {"name": "Bob", "age": "25"}],
            }
        }
    )


class ConversionResponse(BaseModel):
    """全エンドポイント共通の {result, meta} 形式"""

    result: Any
    meta: Dict[str, Any]


# ---------------------------------------------------------------------------
# リクエストモデル
# ---------------------------------------------------------------------------


class EscapeRequest(BaseModel):
    value: CsvCell = ""


class UnescapeRequest(BaseModel):
    value: str = ""


class FromCsvRequest(BaseModel):
    """
    CSV テキストの受け取り方は 2 通り:
      - csv_text : 生テキストをそのまま
      - csv_b64  : Base64 エンコード済み UTF-8 テキスト

    どちらか一方のみ指定すること。
    """

    csv_text: Optional[str] = None
    csv_b64: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "FromCsvRequest":
        if (self.csv_text is None) == (self.csv_b64 is None):
            raise ValueError("specify exactly one of csv_text or csv_b64")
        return self


class FromObjectRequest(BaseModel):
    data: Any = None


class FromJsonTextRequest(BaseModel):
    json_text: str = ""
