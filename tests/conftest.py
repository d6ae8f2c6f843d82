import sys
from pathlib import Path

import pytest

# tests/ から見て 1 つ上 = プロジェクトルート（core / backend を import できるように）
PROJECT_ROOT = Path(__file__).resolve().parents[1]

project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from core.csv_conversion.models import Csv  # noqa: E402


@pytest.fixture
def people_csv() -> Csv:
    """ヘッダ・値の両方にカンマ / クォートを含む表"""
    return Csv(
        columns=["name", "note, extra", 'q"'],
        rows=[
            {"name": "Alice", "note, extra": "a, b", 'q"': 'say "x"'},
            {"name": "", "note, extra": "", 'q"': "plain"},
        ],
    )
