"""
共通レジストリ基底クラス
ランタイムの prepare/execute 変種を (ノード種別, 操作種別) の複合キーで登録・解決する。
"""

from __future__ import annotations

from typing import Any, Callable, Iterable


class BaseRegistry:
    """複合キーのレジストリ。

    - キーは文字列要素のタプル。各要素は小文字化・ハイフン→アンダースコアで正規化される。
    - `Enum` を渡した場合は `.value` を使う（`NodeKind.CURVE` → "curve"）。
    - 同一キーへ別オブジェクトを登録しようとすると `ValueError`。
    """

    def __init__(self, name: str = "registry"):
        self._name = name
        self._registry: dict[tuple[str, ...], Any] = {}

    # === 内部ユーティリティ ===
    @staticmethod
    def _normalize_part(part: Any) -> str:
        value = getattr(part, "value", part)
        if not isinstance(value, str):
            raise TypeError(f"レジストリキーの要素は str/Enum である必要があります: {part!r}")
        if not value:
            raise ValueError("レジストリキーの要素は空であってはなりません")
        return value.replace("-", "_").lower()

    @classmethod
    def normalize_key(cls, key: Iterable[Any]) -> tuple[str, ...]:
        """キーの正規化（例: (NodeKind.CURVE, "Grow") -> ("curve", "grow")）。"""
        return tuple(cls._normalize_part(p) for p in key)

    def register(self, *keys: Iterable[Any]) -> Callable:
        """オブジェクトを 1 つ以上のキーへ登録するデコレータ。"""

        def decorator(obj: Any) -> Any:
            for key in keys:
                nk = self.normalize_key(key)
                if nk in self._registry and self._registry[nk] is not obj:
                    raise ValueError(f"{self._name}: {nk} は既に登録されています")
                self._registry[nk] = obj
            return obj

        return decorator

    def get(self, key: Iterable[Any]) -> Any:
        """登録されたオブジェクトを取得。未登録は `KeyError`。"""
        nk = self.normalize_key(key)
        if nk not in self._registry:
            raise KeyError(f"{self._name}: {nk} は登録されていません")
        return self._registry[nk]

    def is_registered(self, key: Iterable[Any]) -> bool:
        return self.normalize_key(key) in self._registry

    def missing(self, expected: Iterable[Iterable[Any]]) -> list[tuple[str, ...]]:
        """`expected` のうち未登録のキーを返す（網羅性チェック用）。"""
        return [nk for nk in map(self.normalize_key, expected) if nk not in self._registry]

    def list_all(self) -> list[tuple[str, ...]]:
        """登録されているすべてのキー（ソート済み）。"""
        return sorted(self._registry.keys())

    @property
    def registry(self) -> dict[tuple[str, ...], Any]:
        """レジストリの読み取り専用コピー"""
        return self._registry.copy()
