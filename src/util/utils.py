"""
どこで: `util.utils`
何を: YAML 構成ファイルの読み込み（フェイルソフト）。
なぜ: `common.settings` の既定値をリポジトリ同梱の `configs/default.yaml` から上書きできるようにするため。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)


def _safe_load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("failed to load config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _find_project_root(start: Path) -> Path:
    """プロジェクトルートを推定して返す。

    - `src/util/utils.py` から呼ばれる想定で、上位に `.git` / `pyproject.toml` / `configs/`
      があるもっとも近いディレクトリを返す。
    - 見つからない場合は `start.parent.parent` をフォールバックとして返す。
    """
    cur = start.resolve()
    for parent in [cur] + list(cur.parents):
        if (
            (parent / ".git").exists()
            or (parent / "pyproject.toml").exists()
            or (parent / "configs").exists()
        ):
            return parent
    # 典型: <repo>/src/util/utils.py -> <repo>
    return cur.parent.parent


def load_config(root: Path | None = None) -> Dict[str, Any]:
    """構成を読み込んで辞書で返す（フェイルソフト）。

    優先順:
    1) `configs/default.yaml`（ベース）
    2) ルート `config.yaml`（ベースに上書き）
    3) 環境変数 `TB_CONFIG` が指すファイル（最後に上書き）

    - いずれも存在しない/不正な場合は空辞書を返す。
    - ネストした辞書のディープマージは行わず、トップレベルのみ上書き。
    """
    project_root = root if root is not None else _find_project_root(Path(__file__).parent)
    base: Dict[str, Any] = {}

    default_path = project_root / "configs" / "default.yaml"
    if default_path.exists():
        base.update(_safe_load_yaml(default_path))

    root_config_path = project_root / "config.yaml"
    if root_config_path.exists():
        base.update(_safe_load_yaml(root_config_path))

    extra = os.getenv("TB_CONFIG")
    if extra:
        extra_path = Path(extra)
        if extra_path.exists():
            base.update(_safe_load_yaml(extra_path))
        else:
            logger.debug("TB_CONFIG points to a missing file: %s", extra_path)

    return base


__all__ = ["load_config"]
