import socket
import threading

import pytest

from megaphone.client import (
    main,
    parse_reply,
    post_request,
    registration_request,
    subscription_request,
)
from megaphone.messages import (
    ProtocolError,
    RegistrationMessage,
    ServerMessage,
    ServerThreadMessage,
    ThreadMessage,
)
from megaphone.server import ForumServer


def test_registration_request_bytes():
    assert registration_request("ahmed") == b"\x08\x00ahmed\x00\x00\x00\x00\x00"


def test_registration_request_round_trip():
    message = RegistrationMessage.unpack(registration_request("bob"))
    assert message.pseudo == "bob"
    assert message.code == 1
    assert message.user_id == 0


def test_post_request_round_trip():
    message = ThreadMessage.unpack(post_request(199, 0, "hello my name is ahmed"))
    assert message.code == 2
    assert message.user_id == 199
    assert message.thread == 0
    assert message.data == "hello my name is ahmed"


def test_subscription_request_has_no_data():
    message = ThreadMessage.unpack(subscription_request(199, 1))
    assert message.code == 4
    assert message.thread == 1
    assert message.data is None


def test_parse_reply_plain():
    reply = ServerMessage(code=1, user_id=199).pack()
    assert parse_reply(reply) == ServerMessage(code=1, user_id=199)


def test_parse_reply_subscription():
    original = ServerThreadMessage(code=4, user_id=199, thread=1, nb=4444, address="ff02::1")
    assert parse_reply(original.pack()) == original


def test_parse_reply_too_short():
    with pytest.raises(ProtocolError):
        parse_reply(b"\x08")


def _serve(sock, server, count):
    for _ in range(count):
        data, peer = sock.recvfrom(4096)
        reply = server.handle(data)
        if reply is not None:
            sock.sendto(reply, peer)


def test_main_talks_to_server(capsys):
    server = ForumServer()
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.settimeout(5)
        port = sock.getsockname()[1]
        worker = threading.Thread(target=_serve, args=(sock, server, 3))
        worker.start()
        code = main(
            ["--server", "127.0.0.1", "--port", str(port), "--wait", "0", "--no-listen"]
        )
        worker.join(5)
    out = capsys.readouterr().out
    assert code == 0
    assert "codeReq : 1 id : 199 f : 0" in out
    assert "ff02::1" in out
    assert server.forum.get(1).posts[0].message == "hello my name is ahmed"
    assert 199 in server.forum.get(1).subscribers


def test_main_without_server_fails():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as silent:
        silent.bind(("127.0.0.1", 0))
        port = silent.getsockname()[1]
        code = main(
            ["--server", "127.0.0.1", "--port", str(port), "--timeout", "0.2", "--wait", "0"]
        )
    assert code == 1