"""
どこで: `common.settings`
何を: ブレンドエンジンの数値パラメータを型付きで一元管理し、起動時に読み込む。
なぜ: 溶接許容値や RMF の平滑化回数などが各モジュールに散らばらないようにするため。

読み込み順:
1) `_Settings` の既定値
2) `configs/default.yaml` / ルート `config.yaml` の `blend:` セクション
3) 環境変数 `TB_*`（最優先）
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping

from .env import env_bool, env_float, env_int, parse_bool

logger = logging.getLogger(__name__)


@dataclass
class _Settings:
    # Path Utilities
    WELD_TOLERANCE: float = 1e-9

    # RMF
    RMF_ZERO_NORM: float = 1e-10
    RMF_SMOOTH_ITERS: int = 2

    # Geodesic
    GEODESIC_RESOLUTION: int = 16

    # Task
    DEFAULT_TASK_LENGTH: int = 80

    # Misc
    USE_NUMBA: bool = True


_settings = _Settings()


def _apply_mapping(section: Mapping[str, Any]) -> None:
    """YAML の `blend:` セクションを設定へ反映（未知キー/型不正はログのみ）。"""
    known = {f.name: f for f in fields(_Settings)}
    for key, value in section.items():
        name = str(key).upper()
        f = known.get(name)
        if f is None:
            logger.debug("unknown blend setting ignored: %s", key)
            continue
        default = getattr(_Settings, name)
        try:
            if isinstance(default, bool):
                coerced: Any = value if isinstance(value, bool) else parse_bool(str(value))
                if coerced is None:
                    raise ValueError(value)
            elif isinstance(default, int):
                coerced = int(value)
            else:
                coerced = float(value)
        except (TypeError, ValueError):
            logger.warning("invalid value for blend setting %s: %r", key, value)
            continue
        setattr(_settings, name, coerced)


def reload_from_env() -> None:
    """既定値 → YAML → 環境変数の順で設定を再読込。

    - 下限: 許容値/ゼロ判定は 0 以上、反復回数は 0 以上、解像度は 2 以上、長さは 1 以上。
    """
    from util.utils import load_config

    defaults = _Settings()
    for f in fields(_Settings):
        setattr(_settings, f.name, getattr(defaults, f.name))

    section = load_config().get("blend")
    if isinstance(section, Mapping):
        _apply_mapping(section)

    _settings.WELD_TOLERANCE = (
        env_float("TB_WELD_TOLERANCE", _settings.WELD_TOLERANCE, min_value=0.0)
        or 0.0
    )
    _settings.RMF_ZERO_NORM = (
        env_float("TB_RMF_ZERO_NORM", _settings.RMF_ZERO_NORM, min_value=0.0) or 0.0
    )
    _settings.RMF_SMOOTH_ITERS = (
        env_int("TB_RMF_SMOOTH_ITERS", _settings.RMF_SMOOTH_ITERS, min_value=0) or 0
    )
    _settings.GEODESIC_RESOLUTION = (
        env_int("TB_GEODESIC_RESOLUTION", _settings.GEODESIC_RESOLUTION, min_value=2) or 2
    )
    _settings.DEFAULT_TASK_LENGTH = (
        env_int("TB_DEFAULT_TASK_LENGTH", _settings.DEFAULT_TASK_LENGTH, min_value=1) or 1
    )
    _settings.USE_NUMBA = env_bool("TB_USE_NUMBA", _settings.USE_NUMBA)


def get() -> _Settings:
    """現在の設定スナップショットを返す。"""
    return _settings


# 初期ロード
reload_from_env()


__all__ = ["get", "reload_from_env", "_Settings"]
