import pytest

from megaphone.messages import (
    Notification,
    ProtocolError,
    RegistrationMessage,
    ServerMessage,
    ServerThreadMessage,
    ThreadMessage,
    compose_header,
    extract_header,
)


def test_registration_header_value():
    assert compose_header(1, 0) == 0x0800


def test_registration_wire_bytes():
    packed = RegistrationMessage("ahmed").pack()
    assert packed == b"\x08\x00ahmed\x00\x00\x00\x00\x00"


@pytest.mark.parametrize("code", [0, 1, 2, 4, 31])
@pytest.mark.parametrize("user_id", [0, 1, 199, 2047])
def test_header_round_trip(code, user_id):
    assert extract_header(compose_header(code, user_id)) == (code, user_id)


def test_header_masks_oversized_id():
    assert extract_header(compose_header(2, 0x800 + 5)) == (2, 5)


def test_header_fits_sixteen_bits():
    assert compose_header(255, 0xFFFF) <= 0xFFFF


def test_registration_round_trip():
    msg = RegistrationMessage("bob", code=1, user_id=12)
    packed = msg.pack()
    assert len(packed) == RegistrationMessage.SIZE
    assert RegistrationMessage.unpack(packed) == msg


def test_registration_pseudo_too_long():
    with pytest.raises(ProtocolError):
        RegistrationMessage("abcdefghij").pack()


def test_thread_message_round_trip_with_data():
    msg = ThreadMessage(code=2, user_id=199, thread=0, data="hello my name is ahmed")
    packed = msg.pack()
    assert len(packed) == ThreadMessage.SIZE
    assert packed[6] == len("hello my name is ahmed") + 1
    assert ThreadMessage.unpack(packed) == msg


def test_thread_message_without_data():
    msg = ThreadMessage(code=4, user_id=199, thread=1)
    packed = msg.pack()
    assert packed[6] == 0
    decoded = ThreadMessage.unpack(packed)
    assert decoded.data is None
    assert (decoded.code, decoded.user_id, decoded.thread) == (4, 199, 1)


def test_thread_message_accepts_longer_buffer():
    packed = ThreadMessage(code=2, user_id=3, thread=7, data="x").pack()
    assert ThreadMessage.unpack(packed + b"\0" * 100).thread == 7


def test_thread_message_data_too_long():
    with pytest.raises(ProtocolError):
        ThreadMessage(code=2, user_id=1, thread=1, data="y" * 256).pack()


def test_thread_number_out_of_range():
    with pytest.raises(ProtocolError):
        ThreadMessage(code=2, user_id=1, thread=70000).pack()


def test_server_message_round_trip():
    msg = ServerMessage(code=2, user_id=199, thread=3, nb=0)
    packed = msg.pack()
    assert len(packed) == ServerMessage.SIZE
    assert ServerMessage.unpack(packed) == msg


def test_error_reply_header():
    packed = ServerMessage(code=31, user_id=0).pack()
    assert extract_header(int.from_bytes(packed[:2], "big")) == (31, 0)


def test_server_thread_message_round_trip():
    msg = ServerThreadMessage(code=4, user_id=199, thread=1, nb=4444, address="ff02::1")
    packed = msg.pack()
    assert len(packed) == ServerThreadMessage.SIZE
    assert ServerThreadMessage.unpack(packed) == msg


def test_server_thread_message_reads_as_server_message():
    packed = ServerThreadMessage(code=4, user_id=9, thread=2, nb=4445, address="ff02::2").pack()
    assert ServerMessage.unpack(packed) == ServerMessage(code=4, user_id=9, thread=2, nb=4445)


def test_notification_round_trip():
    note = Notification(thread=1, pseudo="ahmed", data="hi there")
    packed = note.pack()
    assert len(packed) == Notification.SIZE
    decoded = Notification.unpack(packed)
    assert decoded == note
    assert decoded.code == 4


def test_notification_data_too_long():
    with pytest.raises(ProtocolError):
        Notification(thread=1, pseudo="a", data="z" * 20).pack()


@pytest.mark.parametrize(
    "cls", [RegistrationMessage, ThreadMessage, ServerMessage, ServerThreadMessage, Notification]
)
def test_unpack_short_buffer(cls):
    with pytest.raises(ProtocolError):
        cls.unpack(b"\x00")