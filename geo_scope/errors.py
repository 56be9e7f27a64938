"""
GEO-Scope Errors
================
エラー分類

- ValidationError: 入力値の不足・範囲外
- NetworkError: タイムアウト、DNS解決失敗、リダイレクト過多、サイズ超過
- SecurityRejection: SSRF対象としてブロックされたURL
- ProviderError: 外部LLM/検索呼び出しの失敗（NoEnginesError: 検索エンジンが0件）
- ParseError: LLMの構造化出力またはページ本文が不正
- AbortedError: 協調キャンセルを検出
- UrlAnalysisError: URLモードのユーザー向けエラー（種別とURLを保持）
"""

from __future__ import annotations


class GeoError(Exception):
    """GEO-Scope の基底例外"""


class ValidationError(GeoError):
    """入力検証エラー"""


class NetworkError(GeoError):
    """ネットワークエラー"""


class SecurityRejection(GeoError):
    """SSRF対策で拒否されたURL"""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class ProviderError(GeoError):
    """外部プロバイダー呼び出しの失敗"""


class NoEnginesError(ProviderError):
    """Web検索対応のエンジンが1つも設定されていない"""


class ParseError(GeoError):
    """構造化出力またはページ本文のパース失敗"""


class AbortedError(GeoError):
    """キャンセル検出"""


class HttpStatusError(NetworkError):
    """URL取得時の非2xxレスポンス"""

    def __init__(self, status_code: int):
        super().__init__(f"Failed to fetch URL: {status_code}")
        self.status_code = status_code


class UrlAnalysisError(GeoError):
    """
    URLモードの失敗

    kind は "blocked", "unreachable", "restricted", "insufficient_content",
    "search_portal", "failed" のいずれか。
    """

    def __init__(self, kind: str, url: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.url = url
