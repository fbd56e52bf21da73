# tumailserver
# MIT licensed

import asyncio


class ServerMetrics:
    def __init__(self):
        self._lock = asyncio.Lock()
        self.metrics = {
            'sessions_accepted': 0,
            'sessions_rejected': 0,
            'messages_stored': 0,
            'messages_discarded': 0,
            'notifications_sent': 0,
        }

    async def increment(self, key: str):
        async with self._lock:
            self.metrics[key] = self.metrics.get(key, 0) + 1

    async def snapshot(self) -> dict:
        async with self._lock:
            return self.metrics.copy()
