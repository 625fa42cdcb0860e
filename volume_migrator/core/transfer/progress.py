"""Byte-count progress reporting through log events."""

from typing import Any

from ...utils import format_size


class TransferProgress:
    """Callback for paramiko's ``put``/``get`` that logs every ``step`` percent."""

    def __init__(self, logger: Any, label: str, step: int = 10):
        self.logger = logger
        self.label = label
        self.step = step
        self._next_percent = step

    def __call__(self, transferred: int, total: int) -> None:
        if total <= 0:
            return

        percent = transferred * 100 // total
        if percent < self._next_percent and transferred < total:
            return

        self.logger.info(
            "Transfer progress",
            file=self.label,
            percent=percent,
            transferred=format_size(transferred),
            total=format_size(total),
        )
        while self._next_percent <= percent:
            self._next_percent += self.step
