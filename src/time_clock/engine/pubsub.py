"""Best-effort publish/subscribe transports for cross-instance updates.

Messages are opaque bytes published on a topic string. Delivery is best
effort: a subscriber that misses a message catches up on its next sync.
"""

import asyncio
import inspect
import logging
import socket
import struct
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

Handler = Callable[[bytes], Union[None, Awaitable[None]]]


class PubSubError(Exception):
    """Transport could not be opened or used."""

    pass


class PubSub(ABC):
    """Topic-based message transport."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``topic``.

        Returns:
            Function that removes the subscription (safe to call twice)
        """
        self._handlers.setdefault(topic, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def subscriber_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    async def _dispatch(self, topic: str, message: bytes) -> None:
        for handler in list(self._handlers.get(topic, [])):
            try:
                result = handler(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Subscriber for topic {topic} failed")

    @abstractmethod
    async def publish(self, topic: str, message: bytes) -> None:
        """Send ``message`` to every other subscriber of ``topic``."""

    async def close(self) -> None:
        self._handlers.clear()


class InProcessPubSub(PubSub):
    """Delivers messages to subscribers in the same process.

    Several engine instances sharing one ``InProcessPubSub`` behave like
    separate front ends sharing a broadcast channel.
    """

    async def publish(self, topic: str, message: bytes) -> None:
        await self._dispatch(topic, message)


class _MulticastProtocol(asyncio.DatagramProtocol):
    def __init__(self, owner: "MulticastPubSub"):
        self.owner = owner

    def datagram_received(self, data: bytes, addr: Any) -> None:
        self.owner._on_datagram(data)

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"Multicast transport error: {exc}")


class MulticastPubSub(PubSub):
    """UDP multicast transport for instances on the same host or LAN.

    Frames are ``topic + b"\\n" + message``. Every instance receives its own
    messages as well, so subscribers must ignore their own origin.
    """

    def __init__(self, group: str = "239.255.42.99", port: int = 47999, ttl: int = 1):
        super().__init__()
        self.group = group
        self.port = port
        self.ttl = ttl
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._tasks: set["asyncio.Task[None]"] = set()

    async def start(self) -> None:
        """Open the multicast socket and join the group."""
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            sock.bind(("", self.port))
            membership = struct.pack("4sl", socket.inet_aton(self.group), socket.INADDR_ANY)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, self.ttl)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_LOOP, 1)
        except OSError as e:
            sock.close()
            raise PubSubError(f"Cannot join multicast group {self.group}:{self.port}: {e}")

        transport, _ = await loop.create_datagram_endpoint(
            lambda: _MulticastProtocol(self), sock=sock
        )
        self._transport = transport  # type: ignore[assignment]
        logger.info(f"Joined multicast group {self.group}:{self.port}")

    def _on_datagram(self, data: bytes) -> None:
        topic, sep, message = data.partition(b"\n")
        if not sep:
            logger.debug("Dropping malformed multicast frame")
            return
        task = asyncio.get_running_loop().create_task(
            self._dispatch(topic.decode("utf-8", errors="replace"), message)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def publish(self, topic: str, message: bytes) -> None:
        if self._transport is None:
            await self.start()
        transport = self._transport
        if transport is None:
            raise PubSubError(f"Multicast group {self.group}:{self.port} is not joined")
        transport.sendto(topic.encode("utf-8") + b"\n" + message, (self.group, self.port))

    async def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        for task in list(self._tasks):
            task.cancel()
        await super().close()
