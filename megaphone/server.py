"""UDP forum server: registrations, posts, subscriptions and multicast notifications."""

from __future__ import annotations

import argparse
import logging
import socket
import threading
from collections.abc import Callable

from megaphone.messages import (
    ID_MASK,
    NOTIFICATION_DATA_FIELD,
    PSEUDO_FIELD,
    Notification,
    ProtocolError,
    RegistrationMessage,
    ServerMessage,
    ServerThreadMessage,
    ThreadMessage,
    extract_header,
)
from megaphone.threads import Forum, Post, Thread, ThreadNotFound
from megaphone.users import UserDirectory

DEFAULT_PORT = 7777
BUF_SIZE = 4096
FIRST_USER_ID = 199
NOTIFY_INTERVAL = 10.0

REGISTER = 1
POST = 2
SUBSCRIBE = 4
ERROR = 31

log = logging.getLogger(__name__)


def _fit(text: str, size: int) -> str:
    """Cut ``text`` so that its UTF-8 form leaves room for a terminating NUL."""
    return text.encode("utf-8")[: size - 1].decode("utf-8", errors="ignore")


class ForumServer:
    """Protocol logic of the forum, independent of any socket."""

    def __init__(
        self,
        forum: Forum | None = None,
        first_user_id: int = FIRST_USER_ID,
        on_new_thread: Callable[[Thread], None] | None = None,
    ) -> None:
        self.users = UserDirectory()
        self.forum = forum if forum is not None else Forum()
        self._next_id = first_user_id
        self._on_new_thread = on_new_thread
        self._lock = threading.RLock()

    def handle(self, data: bytes) -> bytes | None:
        """Process one datagram and return the reply to send, or None to stay silent."""
        if len(data) < 2:
            return None
        code, user_id = extract_header(int.from_bytes(data[:2], "big"))
        log.debug("id : %d codeReq : %d", user_id, code)
        try:
            if code == REGISTER:
                reply = self.register(data)
            elif code == POST:
                reply = self.post(user_id, data)
            elif code == SUBSCRIBE:
                reply = self.subscribe(user_id, data)
            else:
                return None
        except ProtocolError:
            reply = self.error_reply()
        return reply.pack()

    def register(self, data: bytes) -> ServerMessage:
        """Register the pseudonym in ``data`` under the next free identifier."""
        request = RegistrationMessage.unpack(data)
        with self._lock:
            if self._next_id > ID_MASK:
                return self.error_reply()
            user_id = self._next_id
            self.users.add(user_id, request.pseudo)
            self._next_id += 1
        return ServerMessage(code=REGISTER, user_id=user_id)

    def post(self, user_id: int, data: bytes) -> ServerMessage:
        """Publish the message in ``data``; thread 0 opens a new thread."""
        request = ThreadMessage.unpack(data)
        with self._lock:
            try:
                pseudo = self.users.pseudo_of(user_id)
            except KeyError:
                return self.error_reply()
            if pseudo is None:
                return self.error_reply()
            try:
                number = self.forum.add_post(request.thread, pseudo, request.data or "")
            except ThreadNotFound:
                return self.error_reply()
            created = self.forum.get(number) if request.thread == 0 else None
        if created is not None and self._on_new_thread is not None:
            self._on_new_thread(created)
        return ServerMessage(code=request.code, user_id=request.user_id, thread=number)

    def subscribe(self, user_id: int, data: bytes) -> ServerThreadMessage | ServerMessage:
        """Subscribe the user to the thread in ``data`` and return its multicast group."""
        request = ThreadMessage.unpack(data)
        with self._lock:
            try:
                address = self.forum.add_subscriber(request.thread, user_id)
                thread = self.forum.get(request.thread)
            except ThreadNotFound:
                return self.error_reply()
        return ServerThreadMessage(
            code=request.code,
            user_id=request.user_id,
            thread=thread.number,
            nb=thread.port,
            address=address,
        )

    def error_reply(self) -> ServerMessage:
        """The reply sent when a request cannot be honoured."""
        return ServerMessage(code=ERROR, user_id=0)

    def new_posts(self, thread_number: int, after: int) -> list[Post]:
        """Posts of a thread whose number is greater than ``after``, oldest first."""
        with self._lock:
            return [post for post in self.forum.get(thread_number).posts if post.number > after]


def notify_loop(
    server: ForumServer,
    thread_number: int,
    address: str,
    port: int,
    interval: float,
    stop: threading.Event,
) -> None:
    """Every ``interval`` seconds, send the thread's new posts to its group until ``stop`` is set."""
    family, _, _, _, target = socket.getaddrinfo(address, port, type=socket.SOCK_DGRAM)[0]
    sent = 0
    with socket.socket(family, socket.SOCK_DGRAM) as sock:
        while not stop.wait(interval):
            for post in server.new_posts(thread_number, sent):
                note = Notification(
                    thread=thread_number,
                    pseudo=_fit(post.pseudo, PSEUDO_FIELD),
                    data=_fit(post.message, NOTIFICATION_DATA_FIELD),
                )
                try:
                    sock.sendto(note.pack(), target)
                except OSError as exc:
                    log.warning("notification to %s failed: %s", address, exc)
                sent = post.number


def serve(host: str = "::", port: int = DEFAULT_PORT) -> None:
    """Answer forum requests on ``host``:``port`` until interrupted."""
    family, _, _, _, local = socket.getaddrinfo(
        host, port, type=socket.SOCK_DGRAM, flags=socket.AI_PASSIVE
    )[0]
    stop = threading.Event()

    def start_notifier(thread: Thread) -> None:
        threading.Thread(
            target=notify_loop,
            args=(server, thread.number, thread.address, thread.port, NOTIFY_INTERVAL, stop),
            daemon=True,
        ).start()

    server = ForumServer(on_new_thread=start_notifier)
    with socket.socket(family, socket.SOCK_DGRAM) as sock:
        sock.bind(local)
        try:
            while True:
                try:
                    data, peer = sock.recvfrom(BUF_SIZE - 1)
                except OSError as exc:
                    log.error("receive failed: %s", exc)
                    continue
                reply = server.handle(data)
                if reply is not None:
                    sock.sendto(reply, peer)
        finally:
            stop.set()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="megaphone-server", description="Run the forum server.")
    parser.add_argument("--host", default="::")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    try:
        serve(args.host, args.port)
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        log.error("%s", exc)
        return 1
    return 0