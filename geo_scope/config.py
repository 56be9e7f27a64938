"""
Configuration
=============
実行設定（環境変数）とモニター設定ファイルの読み込み・検証
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .types import BrandMonitor, CompetitorBrand, MonitorQuestion


# 分析対象テキストの長さ制限（文字数）
CONTENT_MIN_LENGTH = 50
CONTENT_MAX_LENGTH = 10000

SUPPORTED_LOCALES = ["zh", "en"]

# モニター設定ファイルの必須フィールド
REQUIRED_FIELDS = [
    "id",
    "name",
    "brand_names",
]


@dataclass
class Settings:
    """実行時設定"""
    engine_timeout: float = 60.0     # 検索エンジン呼び出しのタイムアウト（秒）
    fallback_timeout: float = 45.0   # フォールバック呼び出しのタイムアウト（秒）
    fetch_timeout: float = 10.0      # URL取得のタイムアウト（秒）
    fetch_max_bytes: int = 2_000_000
    fetch_max_redirects: int = 3
    skip_dns_ssrf_check: bool = False  # 開発環境専用
    default_locale: str = "zh"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() == "true"


def load_settings(dotenv_path: str | None = None) -> Settings:
    """
    .env と環境変数から実行時設定を読み込む

    Args:
        dotenv_path: .env ファイルのパス（省略時はカレントから探索）

    Returns:
        Settings: 実行時設定
    """
    load_dotenv(dotenv_path)

    return Settings(
        engine_timeout=float(os.getenv("GEO_ENGINE_TIMEOUT", "60")),
        fallback_timeout=float(os.getenv("GEO_FALLBACK_TIMEOUT", "45")),
        fetch_timeout=float(os.getenv("GEO_FETCH_TIMEOUT", "10")),
        fetch_max_bytes=int(os.getenv("GEO_FETCH_MAX_BYTES", "2000000")),
        fetch_max_redirects=int(os.getenv("GEO_FETCH_MAX_REDIRECTS", "3")),
        skip_dns_ssrf_check=_env_flag("SKIP_DNS_SSRF_CHECK"),
        default_locale=os.getenv("GEO_DEFAULT_LOCALE", "zh"),
    )


def load_monitor_config(config_path: str) -> dict[str, Any]:
    """
    モニター設定ファイルを読み込む

    Args:
        config_path: 設定ファイルのパス

    Returns:
        dict: 設定辞書

    Raises:
        FileNotFoundError: 設定ファイルが見つからない場合
        ValueError: 必須フィールドが不足している場合
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"設定ファイルが見つかりません: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        config = json.load(f)

    # 必須フィールドの検証
    for field in REQUIRED_FIELDS:
        if field not in config:
            raise ValueError(f"設定ファイルに必須フィールドがありません: {field}")

    return config


def validate_monitor_config(config: dict[str, Any]) -> list[str]:
    """
    モニター設定の妥当性を検証

    Args:
        config: 設定辞書

    Returns:
        list[str]: エラーメッセージのリスト（空ならOK）
    """
    errors = []

    # brand_names の検証
    brand_names = config.get("brand_names", [])
    if not brand_names or not all(isinstance(n, str) and n.strip() for n in brand_names):
        errors.append("brand_names は1つ以上の空でない文字列が必要です")

    # competitor_brands の検証
    for comp in config.get("competitor_brands", []):
        if not isinstance(comp, dict) or not comp.get("name"):
            errors.append(f"competitor_brands の要素に name がありません: {comp}")

    # locale の検証
    locale = config.get("locale", "zh")
    if locale not in SUPPORTED_LOCALES:
        errors.append(f"不明な locale: {locale}")

    # questions と industry_keywords のどちらかが必要
    questions = config.get("questions", [])
    if not questions and not config.get("industry_keywords"):
        errors.append("questions が空の場合は industry_keywords が必要です")
    for q in questions:
        if not isinstance(q, dict) or not q.get("question"):
            errors.append(f"questions の要素に question がありません: {q}")

    return errors


def build_monitor(config: dict[str, Any]) -> tuple[BrandMonitor, list[MonitorQuestion]]:
    """
    設定辞書から BrandMonitor と質問リストを構築

    Args:
        config: load_monitor_config で読み込んだ設定辞書

    Returns:
        tuple: (BrandMonitor, list[MonitorQuestion])
    """
    monitor = BrandMonitor(
        id=str(config["id"]),
        name=config["name"],
        brand_names=list(config["brand_names"]),
        competitor_brands=[
            CompetitorBrand(name=c["name"], aliases=list(c.get("aliases", [])))
            for c in config.get("competitor_brands", [])
        ],
        industry_keywords=list(config.get("industry_keywords", [])),
        locale=config.get("locale", "zh"),
    )
    questions = [
        MonitorQuestion(
            question=q["question"],
            intent_type=q.get("intent_type", "recommendation"),
            enabled=q.get("enabled", True),
            search_volume=int(q.get("search_volume", 0)),
        )
        for q in config.get("questions", [])
    ]
    return monitor, questions
