"""
ブレンドエンジン向けの軽量ロギングユーティリティ。

要点:
- 各モジュールは `logging.getLogger(__name__)` でロガーを取得する。
- アプリ（デモ CLI 等）側で設定が無い場合に限り、最小構成を 1 度だけ適用する。
- レベル未指定時は環境変数 `TB_LOG_LEVEL`（既定 INFO）を参照する。
"""

from __future__ import annotations

import logging
import os

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("TB_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return getattr(logging, level.strip().upper(), logging.INFO)
    return int(level)


def setup_default_logging(level: int | str | None = None) -> bool:
    """最小限のロギング設定を 1 度だけ適用する。

    Returns
    -------
    bool
        設定を適用した場合 True。ルートロガーに既にハンドラがあれば何もせず False。
    """
    root = logging.getLogger()
    if root.handlers:
        # Assume the app has configured logging
        return False
    logging.basicConfig(level=_resolve_level(level), format=_FORMAT)
    return True


__all__ = ["setup_default_logging"]
