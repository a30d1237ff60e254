"""
どこで: `common` パッケージ。
何を: 設定・ロギング・型エイリアス・複合キーレジストリなど、util/topoblend 双方で使う軽量基盤。
なぜ: 幾何ユーティリティとランタイムの依存の向きを単純化するため。
"""

from .base_registry import BaseRegistry

__all__ = [
    "BaseRegistry",
]
