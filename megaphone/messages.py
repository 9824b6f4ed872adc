"""Wire formats of the forum protocol: headers, requests, replies and notifications."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import ClassVar

CODE_MASK = 0x1F
ID_MASK = 0x7FF
ID_BITS = 11

PSEUDO_FIELD = 10
DATA_FIELD = 256
ADDRESS_FIELD = 16
NOTIFICATION_DATA_FIELD = 20


class ProtocolError(ValueError):
    """Raised when a message cannot be encoded or decoded."""


def compose_header(code: int, user_id: int) -> int:
    """Build the 16-bit header: a 5-bit request code above an 11-bit user id."""
    return ((code & CODE_MASK) << ID_BITS) | (user_id & ID_MASK)


def extract_header(header: int) -> tuple[int, int]:
    """Split a 16-bit header into ``(code, user_id)``."""
    header &= 0xFFFF
    return (header >> ID_BITS) & CODE_MASK, header & ID_MASK


def _encode_field(text: str, size: int, name: str) -> bytes:
    raw = text.encode("utf-8")
    if len(raw) >= size:
        raise ProtocolError(f"{name} must be shorter than {size} bytes")
    return raw


def _decode_field(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _pack(layout: struct.Struct, *values: object) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ProtocolError(str(exc)) from exc


def _unpack(layout: struct.Struct, data: bytes, name: str) -> tuple:
    if len(data) < layout.size:
        raise ProtocolError(
            f"{name} needs {layout.size} bytes, got {len(data)}"
        )
    return layout.unpack_from(data)


@dataclass(frozen=True)
class RegistrationMessage:
    """Client request to register a pseudonym."""

    pseudo: str
    code: int = 1
    user_id: int = 0

    LAYOUT: ClassVar[struct.Struct] = struct.Struct(f"!H{PSEUDO_FIELD}s")
    SIZE: ClassVar[int] = LAYOUT.size

    def pack(self) -> bytes:
        pseudo = _encode_field(self.pseudo, PSEUDO_FIELD, "pseudo")
        return _pack(self.LAYOUT, compose_header(self.code, self.user_id), pseudo)

    @classmethod
    def unpack(cls, data: bytes) -> RegistrationMessage:
        header, pseudo = _unpack(cls.LAYOUT, data, "registration")
        code, user_id = extract_header(header)
        return cls(pseudo=_decode_field(pseudo), code=code, user_id=user_id)


@dataclass(frozen=True)
class ThreadMessage:
    """Client request concerning a thread: posting, subscribing and the like."""

    code: int
    user_id: int
    thread: int
    nb: int = 0
    data: str | None = None

    LAYOUT: ClassVar[struct.Struct] = struct.Struct(f"!HHHB{DATA_FIELD}sx")
    SIZE: ClassVar[int] = LAYOUT.size

    def pack(self) -> bytes:
        if self.data is None:
            raw, length = b"", 0
        else:
            raw = _encode_field(self.data, DATA_FIELD, "data")
            length = len(raw) + 1
        return _pack(
            self.LAYOUT,
            compose_header(self.code, self.user_id),
            self.thread,
            self.nb,
            length,
            raw,
        )

    @classmethod
    def unpack(cls, data: bytes) -> ThreadMessage:
        header, thread, nb, length, raw = _unpack(cls.LAYOUT, data, "thread message")
        code, user_id = extract_header(header)
        text = _decode_field(raw) if length else None
        return cls(code=code, user_id=user_id, thread=thread, nb=nb, data=text)


@dataclass(frozen=True)
class ServerMessage:
    """Server reply carrying a header, a thread number and a count."""

    code: int
    user_id: int
    thread: int = 0
    nb: int = 0

    LAYOUT: ClassVar[struct.Struct] = struct.Struct("!HHH")
    SIZE: ClassVar[int] = LAYOUT.size

    def pack(self) -> bytes:
        return _pack(
            self.LAYOUT, compose_header(self.code, self.user_id), self.thread, self.nb
        )

    @classmethod
    def unpack(cls, data: bytes) -> ServerMessage:
        header, thread, nb = _unpack(cls.LAYOUT, data, "server message")
        code, user_id = extract_header(header)
        return cls(code=code, user_id=user_id, thread=thread, nb=nb)


@dataclass(frozen=True)
class ServerThreadMessage:
    """Server reply to a subscription, carrying the thread's multicast address."""

    code: int
    user_id: int
    thread: int
    nb: int
    address: str

    LAYOUT: ClassVar[struct.Struct] = struct.Struct(f"!HHH{ADDRESS_FIELD}s")
    SIZE: ClassVar[int] = LAYOUT.size

    def pack(self) -> bytes:
        address = _encode_field(self.address, ADDRESS_FIELD, "address")
        return _pack(
            self.LAYOUT,
            compose_header(self.code, self.user_id),
            self.thread,
            self.nb,
            address,
        )

    @classmethod
    def unpack(cls, data: bytes) -> ServerThreadMessage:
        header, thread, nb, address = _unpack(cls.LAYOUT, data, "server thread message")
        code, user_id = extract_header(header)
        return cls(
            code=code,
            user_id=user_id,
            thread=thread,
            nb=nb,
            address=_decode_field(address),
        )


@dataclass(frozen=True)
class Notification:
    """Multicast notification announcing a post on a thread."""

    thread: int
    pseudo: str
    data: str
    code: int = 4
    user_id: int = 0

    LAYOUT: ClassVar[struct.Struct] = struct.Struct(
        f"!HH{PSEUDO_FIELD}s{NOTIFICATION_DATA_FIELD}s"
    )
    SIZE: ClassVar[int] = LAYOUT.size

    def pack(self) -> bytes:
        pseudo = _encode_field(self.pseudo, PSEUDO_FIELD, "pseudo")
        text = _encode_field(self.data, NOTIFICATION_DATA_FIELD, "data")
        return _pack(
            self.LAYOUT,
            compose_header(self.code, self.user_id),
            self.thread,
            pseudo,
            text,
        )

    @classmethod
    def unpack(cls, data: bytes) -> Notification:
        header, thread, pseudo, text = _unpack(cls.LAYOUT, data, "notification")
        code, user_id = extract_header(header)
        return cls(
            thread=thread,
            pseudo=_decode_field(pseudo),
            data=_decode_field(text),
            code=code,
            user_id=user_id,
        )