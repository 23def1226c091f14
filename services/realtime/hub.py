"""Per-channel registry of WebSocket connections.

Delivery is best effort: a broadcast goes to whoever is connected right
now, nothing is queued for later, and a connection that fails to receive
is dropped from the channel.
"""

import logging

logger = logging.getLogger("realtime.hub")

CHANNELS = ("orders", "iot")


class UnknownChannel(KeyError):
    pass


class ConnectionHub:
    """Tracks open sockets by channel and fans messages out to them.

    Everything runs on the server's event loop, so the sets are only ever
    touched from one thread.
    """

    def __init__(self, channels=CHANNELS):
        self._channels: dict[str, set] = {name: set() for name in channels}

    def has_channel(self, channel: str) -> bool:
        return channel in self._channels

    def _members(self, channel: str) -> set:
        try:
            return self._channels[channel]
        except KeyError:
            raise UnknownChannel(channel) from None

    def add(self, channel: str, ws) -> None:
        self._members(channel).add(ws)
        logger.info("client connected", extra={"channel": channel, "clients": self.count(channel)})

    def remove(self, channel: str, ws) -> None:
        members = self._members(channel)
        if ws in members:
            members.discard(ws)
            logger.info("client disconnected", extra={"channel": channel, "clients": len(members)})

    def count(self, channel: str) -> int:
        return len(self._members(channel))

    async def broadcast(self, channel: str, message: dict) -> int:
        """Send ``message`` to every socket on ``channel``.

        Returns:
            int: How many sockets accepted the message.
        """
        delivered = 0
        # snapshot: sockets may disconnect while we await
        for ws in list(self._members(channel)):
            try:
                await ws.send_json(message)
            except Exception:
                logger.warning("dropping unreachable client", extra={"channel": channel}, exc_info=True)
                self.remove(channel, ws)
            else:
                delivered += 1
        return delivered
