"""UDP forum client: builds requests, reads replies and listens for notifications."""

from __future__ import annotations

import argparse
import socket
import struct
import sys
import threading
import time
from collections.abc import Callable

from megaphone.messages import (
    Notification,
    ProtocolError,
    RegistrationMessage,
    ServerMessage,
    ServerThreadMessage,
    ThreadMessage,
    extract_header,
)

DEFAULT_PORT = 7777
REPLY_SIZE = ServerThreadMessage.SIZE


def registration_request(pseudo: str) -> bytes:
    """Request to register ``pseudo``."""
    return RegistrationMessage(pseudo).pack()


def post_request(user_id: int, thread: int, message: str) -> bytes:
    """Request to post ``message`` on ``thread`` (0 opens a new thread)."""
    return ThreadMessage(code=2, user_id=user_id, thread=thread, data=message).pack()


def subscription_request(user_id: int, thread: int) -> bytes:
    """Request to subscribe to ``thread``."""
    return ThreadMessage(code=4, user_id=user_id, thread=thread).pack()


def parse_reply(data: bytes) -> ServerMessage | ServerThreadMessage:
    """Decode a server reply; subscription replies carry a multicast address."""
    if len(data) < 2:
        raise ProtocolError("reply too short")
    code, _ = extract_header(int.from_bytes(data[:2], "big"))
    if code == 4 and len(data) >= ServerThreadMessage.SIZE:
        return ServerThreadMessage.unpack(data)
    return ServerMessage.unpack(data)


def listen_notifications(
    address: str,
    port: int,
    interface: str | None,
    on_notification: Callable[[Notification], None],
) -> None:
    """Join the IPv6 multicast group and pass each notification on; return on socket failure."""
    try:
        sock = socket.socket(socket.AF_INET6, socket.SOCK_DGRAM)
    except OSError:
        return
    with sock:
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("::", port))
            index = socket.if_nametoindex(interface) if interface else 0
            group = socket.inet_pton(socket.AF_INET6, address) + struct.pack("@I", index)
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_JOIN_GROUP, group)
        except (OSError, AttributeError):
            return
        while True:
            try:
                data = sock.recv(Notification.SIZE)
            except OSError:
                return
            try:
                note = Notification.unpack(data)
            except ProtocolError:
                continue
            on_notification(note)


def _print_notification(note: Notification) -> None:
    print(f"file : {note.thread} pseudo : {note.pseudo} message : {note.data}", flush=True)


def _report(reply: ServerMessage | ServerThreadMessage) -> None:
    print(f"codeReq : {reply.code} id : {reply.user_id} f : {reply.thread}")


def _exchange(sock: socket.socket, server: tuple, request: bytes) -> ServerMessage | ServerThreadMessage:
    sock.sendto(request, server)
    data, _ = sock.recvfrom(REPLY_SIZE)
    return parse_reply(data)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="megaphone-client", description="Talk to a forum server.")
    parser.add_argument("--server", default="::1")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--pseudo", default="ahmed")
    parser.add_argument("--message", default="hello my name is ahmed")
    parser.add_argument("--interface", default="eth0")
    parser.add_argument("--timeout", type=float, default=5.0)
    parser.add_argument("--wait", type=float, default=30.0)
    parser.add_argument("--no-listen", action="store_true")
    args = parser.parse_args(argv)

    try:
        family, _, _, _, server = socket.getaddrinfo(
            args.server, args.port, type=socket.SOCK_DGRAM
        )[0]
        with socket.socket(family, socket.SOCK_DGRAM) as sock:
            sock.settimeout(args.timeout)
            reply = _exchange(sock, server, registration_request(args.pseudo))
            _report(reply)
            user_id = reply.user_id
            reply = _exchange(sock, server, post_request(user_id, 0, args.message))
            _report(reply)
            thread = reply.thread if reply.code == 2 else 1
            reply = _exchange(sock, server, subscription_request(user_id, thread))
            _report(reply)
    except (OSError, ProtocolError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if isinstance(reply, ServerThreadMessage) and reply.code == 4:
        print(reply.address)
        if not args.no_listen:
            threading.Thread(
                target=listen_notifications,
                args=(reply.address, reply.nb, args.interface, _print_notification),
                daemon=True,
            ).start()
    time.sleep(args.wait)
    return 0