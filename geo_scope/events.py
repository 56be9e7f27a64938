"""
Progress Events
===============
進捗イベントのチャネルと協調キャンセル

オーケストレーターはコールバックではなく EventChannel を受け取り、
フェーズごとに ProgressEvent を送信する。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional, Protocol

from .errors import AbortedError


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ProgressEvent:
    """進捗イベント"""
    type: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_now_iso)


class EventSink(Protocol):
    """イベント送信先のインターフェース"""

    def send(self, event: ProgressEvent) -> None:
        ...


class EventChannel:
    """
    asyncio.Queue ベースのイベントチャネル

    送信側は send() で積み、受信側は async for で順に取り出す。
    close() 後は終端マーカーで反復が終了する。
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    def send(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item


class ListEventSink:
    """受信したイベントをリストに保持するシンク"""

    def __init__(self):
        self.events: list[ProgressEvent] = []

    def send(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]


def emit(sink: Optional[EventSink], event_type: str, **data: Any) -> None:
    """シンクが指定されていればイベントを送信"""
    if sink is not None:
        sink.send(ProgressEvent(type=event_type, data=data))


class CancelToken:
    """
    協調キャンセルのシグナル

    フェーズ境界で raise_if_cancelled() を呼び出して確認する。
    実行中の外部呼び出しは中断しない。
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, message: str = "Check aborted") -> None:
        if self._event.is_set():
            raise AbortedError(message)
