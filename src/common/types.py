"""
どこで: `common` の型定義。
何を: Vec3（空間座標）と Coord（ノード局所パラメータ (u, v)）の軽量エイリアス。
なぜ: 依存の少ない場所に置き、`util`/`topoblend` の双方から循環なしに参照するため。
"""

Vec3 = tuple[float, float, float]

# カーブは u のみ使用（v は 0）、シートは (u, v) ∈ [0,1]^2
Coord = tuple[float, float]


__all__ = ["Vec3", "Coord"]
