"""Subscriber doubles for realtime tests."""

from typing import Any, List


class RecordingSocket:
    """Collects every message the hub sends it."""

    def __init__(self, fail: bool = False) -> None:
        self.messages: List[Any] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(data)

    def events(self, name: str) -> List[Any]:
        return [m["data"] for m in self.messages if m["event"] == name]
