from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

NoticeLevel = Literal["info", "success", "error"]


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


class NoticeBoard:
    """User-visible toasts; the rendering layer drains `notices`."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def post(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self.notices.append(notice)
        logger.debug("notice level=%s message=%s", level, message)
        return notice

    def latest(self) -> Notice | None:
        return self.notices[-1] if self.notices else None

    def drain(self) -> list[Notice]:
        drained = list(self.notices)
        self.notices = []
        return drained
