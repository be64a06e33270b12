"""
SSE connection registry.

Tracks which clients are attached to which board's stream and delivers
frames to them. Each client is represented by a ``write`` callable that
accepts a ready-made SSE frame; the stream endpoint backs it with an
asyncio queue. A client whose write fails is dropped.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from teambeat.realtime.events import HEARTBEAT_FRAME, BoardEvent, now_ms
from teambeat.stores.presence import PresenceStore

logger = logging.getLogger(__name__)


@dataclass
class SSEClient:
    """One open stream."""

    client_id: str
    write: Callable[[str], None]
    user_id: Optional[str] = None
    board_id: Optional[str] = None
    last_seen: float = 0.0  # epoch seconds
    last_ping_sent: Optional[float] = None
    close: Optional[Callable[[], None]] = None


class SSEManager:
    """Registry of SSE clients indexed by board."""

    def __init__(
        self,
        stale_timeout_seconds: int = 300,
        ping_interval_seconds: int = 20,
        clock: Callable[[], float] = time.time,
    ):
        self.stale_timeout_seconds = stale_timeout_seconds
        self.ping_interval_seconds = ping_interval_seconds
        self.clock = clock
        self._clients: Dict[str, SSEClient] = {}
        self._board_clients: Dict[str, Set[str]] = {}

    # ===== Registration =====

    def add_client(
        self,
        client_id: str,
        write: Callable[[str], None],
        user_id: Optional[str] = None,
        board_id: Optional[str] = None,
        close: Optional[Callable[[], None]] = None,
    ) -> SSEClient:
        client = SSEClient(
            client_id=client_id,
            write=write,
            user_id=user_id,
            board_id=board_id,
            last_seen=self.clock(),
            close=close,
        )
        self._clients[client_id] = client
        if board_id:
            self._board_clients.setdefault(board_id, set()).add(client_id)
        logger.info(f"SSE client {client_id} connected, board: {board_id}, user: {user_id}")
        return client

    def _detach_from_board(self, client: SSEClient) -> None:
        if not client.board_id:
            return
        board_clients = self._board_clients.get(client.board_id)
        if board_clients is not None:
            board_clients.discard(client.client_id)
            if not board_clients:
                del self._board_clients[client.board_id]

    def remove_client(self, client_id: str) -> Optional[SSEClient]:
        """
        Deregister a client and close its stream.

        Returns:
            The removed client, or None if it was not registered
        """
        client = self._clients.pop(client_id, None)
        if client is None:
            return None
        self._detach_from_board(client)
        if client.close is not None:
            try:
                client.close()
            except Exception:
                logger.debug(f"Stream for SSE client {client_id} already closed")
        logger.info(f"SSE client {client_id} disconnected")
        return client

    def update_client_board(
        self, client_id: str, board_id: str, user_id: Optional[str] = None
    ) -> Optional[SSEClient]:
        """Move a client to another board's stream."""
        client = self._clients.get(client_id)
        if client is None:
            return None
        self._detach_from_board(client)
        client.board_id = board_id
        if user_id:
            client.user_id = user_id
        client.last_seen = self.clock()
        self._board_clients.setdefault(board_id, set()).add(client_id)
        logger.info(f"SSE client {client_id} joined board {board_id}")
        return client

    def leave_board(self, client_id: str) -> Optional[str]:
        """
        Detach a client from its board without closing the stream.

        Returns:
            The board the client left, if any
        """
        client = self._clients.get(client_id)
        if client is None or not client.board_id:
            return None
        board_id = client.board_id
        self._detach_from_board(client)
        client.board_id = None
        return board_id

    # ===== Delivery =====

    def _deliver(self, client: SSEClient, frame: str) -> bool:
        try:
            client.write(frame)
        except Exception as e:
            logger.error(f"Failed to send SSE frame to client {client.client_id}: {e}")
            self.remove_client(client.client_id)
            return False
        client.last_seen = self.clock()
        return True

    def broadcast_to_board(
        self, board_id: str, event: BoardEvent, exclude_user_id: Optional[str] = None
    ) -> int:
        """
        Send an event to every client on a board.

        Args:
            board_id: Target board
            event: Event to send
            exclude_user_id: Skip this user's clients (usually the actor)

        Returns:
            Number of clients the frame was delivered to
        """
        client_ids = list(self._board_clients.get(board_id, ()))
        if not client_ids:
            return 0
        frame = event.encode()
        delivered = 0
        for client_id in client_ids:
            client = self._clients.get(client_id)
            if client is None:
                continue
            if exclude_user_id and client.user_id == exclude_user_id:
                continue
            if self._deliver(client, frame):
                delivered += 1
        logger.debug(
            f"SSE broadcast to board {board_id}: {event.type}, clients: {delivered}"
        )
        return delivered

    def broadcast_to_user(self, board_id: str, user_id: str, event: BoardEvent) -> int:
        """Send an event to every client a user has open on a board."""
        client_ids = list(self._board_clients.get(board_id, ()))
        frame = event.encode()
        delivered = 0
        for client_id in client_ids:
            client = self._clients.get(client_id)
            if client is not None and client.user_id == user_id:
                if self._deliver(client, frame):
                    delivered += 1
        logger.debug(
            f"SSE message to user {user_id} on board {board_id}: {event.type}, "
            f"clients: {delivered}"
        )
        return delivered

    def send_to_client(self, client_id: str, event: BoardEvent) -> bool:
        client = self._clients.get(client_id)
        if client is None:
            return False
        return self._deliver(client, event.encode())

    # ===== Introspection =====

    def get_client(self, client_id: str) -> Optional[SSEClient]:
        return self._clients.get(client_id)

    def get_board_clients(self, board_id: str) -> List[SSEClient]:
        return [
            self._clients[cid]
            for cid in list(self._board_clients.get(board_id, ()))
            if cid in self._clients
        ]

    def get_connected_users(self, board_id: str) -> List[Dict[str, str]]:
        """
        List authenticated clients on a board.

        Returns:
            List of {"user_id", "client_id"} dicts; a user with several
            tabs open appears once per tab
        """
        return [
            {"user_id": client.user_id, "client_id": client.client_id}
            for client in self.get_board_clients(board_id)
            if client.user_id
        ]

    def get_active_user_count(self, board_id: str) -> int:
        return sum(1 for client in self.get_board_clients(board_id) if client.user_id)

    def client_count(self) -> int:
        return len(self._clients)

    def close_all(self) -> int:
        """Close every stream; used on shutdown."""
        client_ids = list(self._clients)
        for client_id in client_ids:
            self.remove_client(client_id)
        return len(client_ids)

    # ===== Maintenance =====

    def send_heartbeat(self, client_id: str) -> bool:
        client = self._clients.get(client_id)
        if client is None:
            return False
        return self._deliver(client, HEARTBEAT_FRAME)

    def send_heartbeats(self) -> int:
        """Send a heartbeat comment to every client; returns clients reached."""
        return sum(1 for client_id in list(self._clients) if self.send_heartbeat(client_id))

    def cleanup_stale_connections(self) -> int:
        """
        Drop clients that have not received anything within the stale timeout.

        Returns:
            Number of clients removed
        """
        threshold = self.clock() - self.stale_timeout_seconds
        stale = [cid for cid, c in self._clients.items() if c.last_seen < threshold]
        for client_id in stale:
            self.remove_client(client_id)
        return len(stale)

    def send_presence_pings(self, presence: PresenceStore) -> int:
        """
        Ping clients whose users are close to timing out of presence.

        A client is pinged at most once per ping interval.

        Returns:
            Number of pings sent
        """
        now = self.clock()
        sent = 0
        for board_id in list(self._board_clients):
            try:
                nearing = {e.user_id for e in presence.get_users_nearing_timeout(board_id)}
                for client in self.get_board_clients(board_id):
                    if not client.user_id or client.user_id not in nearing:
                        continue
                    since_last = (
                        now - client.last_ping_sent
                        if client.last_ping_sent is not None
                        else float("inf")
                    )
                    if since_last > self.ping_interval_seconds:
                        event = BoardEvent("presence_ping", board_id, timestamp=now_ms())
                        if self._deliver(client, event.encode()):
                            client.last_ping_sent = now
                            sent += 1
            except Exception:
                logger.exception(f"Failed to send presence pings for board {board_id}")
        return sent
