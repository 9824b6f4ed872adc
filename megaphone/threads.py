"""Forum threads, their posts and the allocation of multicast groups."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from megaphone.users import UserDirectory

MAX_FILE_SIZE = 32 * 1024 * 1024
FIRST_MULTICAST_ADDRESS = "ff02::1"
FIRST_MULTICAST_PORT = 4444


class ThreadNotFound(LookupError):
    """Raised when a thread number does not exist."""


def next_multicast_address(address: str) -> str:
    """Return ``address`` with its last hexadecimal group incremented by one."""
    head, sep, last = address.rpartition(":")
    if not sep:
        raise ValueError(f"not an IPv6 address: {address!r}")
    try:
        value = int(last, 16) + 1
    except ValueError:
        raise ValueError(f"invalid last group in {address!r}") from None
    if value > 0xFFFF:
        raise ValueError(f"no address follows {address!r}")
    return f"{head}:{value:x}"


@dataclass
class Post:
    """A message published on a thread."""

    number: int
    pseudo: str
    message: str


@dataclass
class StoredFile:
    """A file published on a thread."""

    number: int
    owner_id: int
    name: str
    data: bytes = b""

    def __post_init__(self) -> None:
        if len(self.data) > MAX_FILE_SIZE:
            raise ValueError(f"file exceeds {MAX_FILE_SIZE} bytes")


@dataclass
class Thread:
    """A discussion thread with its multicast group, posts, files and subscribers."""

    number: int
    address: str
    port: int
    posts: list[Post] = field(default_factory=list)
    files: list[StoredFile] = field(default_factory=list)
    subscribers: UserDirectory = field(default_factory=UserDirectory)


class Forum:
    """The set of threads, allocating numbers, ports and multicast addresses."""

    def __init__(
        self,
        first_address: str = FIRST_MULTICAST_ADDRESS,
        first_port: int = FIRST_MULTICAST_PORT,
        first_number: int = 1,
    ) -> None:
        self._threads: dict[int, Thread] = {}
        self._next_address = first_address
        self._next_port = first_port
        self._next_number = first_number

    def get(self, number: int) -> Thread:
        """Return the thread numbered ``number``; raise ThreadNotFound otherwise."""
        try:
            return self._threads[number]
        except KeyError:
            raise ThreadNotFound(f"no thread numbered {number}") from None

    def add_thread(self, number: int) -> Thread:
        """Create thread ``number`` with the next free port and address."""
        if number in self._threads:
            raise ValueError(f"thread {number} already exists")
        thread = Thread(number=number, address=self._next_address, port=self._next_port)
        self._next_address = next_multicast_address(self._next_address)
        self._next_port += 1
        self._threads[number] = thread
        return thread

    def add_post(self, number: int, pseudo: str, message: str) -> int:
        """Post on thread ``number``, or on a new thread when it is 0; return the thread number."""
        if number == 0:
            while self._next_number in self._threads:
                self._next_number += 1
            thread = self.add_thread(self._next_number)
            self._next_number += 1
        else:
            thread = self.get(number)
        post_number = thread.posts[-1].number + 1 if thread.posts else 1
        thread.posts.append(Post(number=post_number, pseudo=pseudo, message=message))
        return thread.number

    def add_subscriber(self, number: int, user_id: int) -> str:
        """Subscribe ``user_id`` to thread ``number`` and return its multicast address."""
        thread = self.get(number)
        thread.subscribers.add(user_id, None)
        return thread.address

    def __contains__(self, number: object) -> bool:
        return number in self._threads

    def __len__(self) -> int:
        return len(self._threads)

    def __iter__(self) -> Iterator[Thread]:
        return iter(self._threads.values())