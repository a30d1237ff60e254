"""
どこで: `topoblend.runtime.errors`
何を: タスク実行中の例外をラップする `TaskError`。
なぜ: スケジューラが「どのタスクで落ちたか」を呼び出し側へ伝え、ログと例外の両方に文脈を残すため。
"""

from __future__ import annotations


class TaskError(Exception):
    """prepare/execute 中の例外をラップしてタスク id 等の文脈を付与。

    プロセス境界を越えても復元できるよう、単一のメッセージ引数でも初期化できる。
    """

    def __init__(
        self,
        task_id: int | str | None = None,
        original: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        # Unpickle 経路（message だけで復元される）
        if message is None and isinstance(task_id, str) and original is None:
            message = task_id
            task_id = None

        if message is None:
            message = f"TaskError(task_id={task_id}): {original}"
        super().__init__(message)
        self.task_id = task_id
        self.original = original

    def __reduce__(self):
        return (TaskError, (str(self),))


__all__ = ["TaskError"]
