# megaphone

A small discussion service over UDP. Users register with a pseudonym,
post short messages to numbered threads and subscribe to threads. Each
thread gets its own IPv6 multicast group and port, and the server sends
the thread's new posts to that group every ten seconds.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running

Start the server. By default it listens on UDP port 7777 on all
addresses:

```
megaphone-server
megaphone-server --host :: --port 7777
```

In another terminal, run the client:

```
megaphone-client
```

The client registers a pseudonym, posts a message to a new thread,
subscribes to that thread and prints each reply as
`codeReq : <code> id : <id> f : <thread>`. If the subscription succeeds
it prints the thread's multicast address, joins that group in the
background and prints the notifications it receives as
`file : <thread> pseudo : <pseudo> message : <text>`, until the waiting
time runs out.

Client options:

| option          | default                  | meaning                                        |
|-----------------|--------------------------|------------------------------------------------|
| `--server`      | `::1`                    | server host                                    |
| `--port`        | `7777`                   | server port                                    |
| `--pseudo`      | `ahmed`                  | pseudonym to register                          |
| `--message`     | `hello my name is ahmed` | message to post                                |
| `--interface`   | `eth0`                   | network interface used to join the group       |
| `--timeout`     | `5.0`                    | seconds to wait for each server reply          |
| `--wait`        | `30.0`                   | seconds to keep running after subscribing      |
| `--no-listen`   | off                      | do not join the multicast group                |

If joining the group fails (for example because the interface does not
exist), the client silently receives no notifications.

## Protocol

All integers are big-endian. Every message begins with a 16-bit header
holding a 5-bit request code above an 11-bit user id:

| code | meaning                      |
|------|------------------------------|
| 1    | registration                 |
| 2    | post a message to a thread   |
| 4    | subscribe to a thread        |
| 31   | error reply from the server  |

- Registered users get identifiers counting up from 199; once the 11-bit
  range is used up, registration answers with an error.
- Posting to thread 0 creates a new thread, numbered from 1 upwards.
  Posting to a thread that does not exist, or as an unknown user, gives
  an error reply.
- A subscription reply carries the thread number, the thread's
  multicast port and its multicast address. Addresses start at
  `ff02::1` and ports at 4444, each new thread taking the next one.
- Requests with any other code get no reply.

Notifications carry at most 9 bytes of pseudonym and 19 bytes of
message text; longer posts are cut short in the notification.

## Library use

The pieces can be used on their own:

- `megaphone.messages` builds and parses the wire formats:
  `compose_header`, `extract_header`, `RegistrationMessage`,
  `ThreadMessage`, `ServerMessage`, `ServerThreadMessage` and
  `Notification`, each with `pack()` and `unpack(data)`. Malformed or
  oversized fields raise `ProtocolError`.
- `megaphone.threads` holds the thread store (`Forum`, `Thread`, `Post`,
  `StoredFile`), `ThreadNotFound` and `next_multicast_address`.
- `megaphone.users` holds `UserDirectory`.
- `megaphone.server.ForumServer` answers requests given as bytes,
  without any socket, through `ForumServer.handle`; `serve` and
  `notify_loop` run it over UDP.
- `megaphone.client` builds requests (`registration_request`,
  `post_request`, `subscription_request`), reads replies
  (`parse_reply`) and listens to a thread's group
  (`listen_notifications`).

```python
from megaphone.server import ForumServer
from megaphone.client import registration_request, post_request, parse_reply

server = ForumServer()
reply = parse_reply(server.handle(registration_request("alice")))
print(reply.user_id)  # 199

reply = parse_reply(server.handle(post_request(reply.user_id, 0, "hi")))
print(reply.thread)  # 1
```

## What it does not do

- Everything is kept in memory; users, threads and posts are lost when
  the server stops.
- There is no request for reading back a thread's posts; they reach
  clients only through multicast notifications.
- `StoredFile` and `Thread.files` exist in the thread store, but there
  is no request for sending or fetching files.