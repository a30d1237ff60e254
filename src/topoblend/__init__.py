"""
どこで: `topoblend` パッケージ（トポロジーブレンドのタスクエンジン）。
何を: 構造グラフ上の GROW/SHRINK/MORPH/SPLIT/MERGE 操作を時間窓つきタスクとして準備・実行する。
なぜ: ある形状グラフを位相の異なる目標グラフへ、端点の接続を保ったまま滑らかに変形させるため。

構成:
- `topoblend.core`   : 構造グラフ、Curve/Sheet、測地パス
- `topoblend.runtime`: Task 状態機械、(ノード種別 × 操作種別) のディスパッチ、スケジューラ
"""

__version__ = "0.1.0"
