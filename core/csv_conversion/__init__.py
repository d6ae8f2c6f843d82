# core/csv_conversion/__init__.py

"""
CSV Conversion API core package.

- models.py : Pydantic モデル定義（Csv / リクエスト / レスポンス）
- service.py: メイン処理（CSV テキスト <-> 表 <-> オブジェクト配列 の相互変換）
"""
