# bftgset

`bftgset` keeps a grow-only set (G-Set) on a group of replicas and tolerates
Byzantine faults. Replicas and clients exchange messages over ZeroMQ. A group
of `n` replicas tolerates up to `f = (n - 1) // 3` faulty replicas:

- **ADD** goes to `2f + 1` randomly chosen replicas. The record spreads
  through Bracha reliable broadcast (INIT, ECHO, VOTE). A replica adds the
  record once it has seen `n - f` votes for it. The client returns once
  `f + 1` replicas have acknowledged the record.
- **GET** goes to `3f + 1` replicas. Once at least `2f + 1` replies have
  arrived, the client returns the records that appear in at least `f + 1` of
  them, separated by spaces.

## Installation

```
pip install .
```

## Configuration files

By default the commands look for their files in the parent of the working
directory; `--hosts-dir DIR` points them elsewhere.

- Local mode (the default): a `hosts` file holding a port range such as
  `5555-5558`. Lines containing `[` are ignored. One replica runs on
  `localhost` for every port in the range.
- Remote mode (`--remote`): a `hosts` file with sections `[master]`,
  `[clients]`, `[servers-normal]`, `[servers-mute]` and
  `[servers-malicious]`, one host name per line, and a `config` file whose
  first two lines are `key=port` and `key=threads`. Every server host runs
  replicas on ports `port` to `port + threads - 1`.

## Running replicas

```
bftgset-server
```

This starts every replica of the local port range. With `--remote` it starts
the replicas of this machine (named by its short host name) and connects them
to all replicas listed in the server sections.

An optional behaviour argument selects how the replicas act: `normal`
(the default), `mute` (also `mutes` or `m`) or `malicious`. Mute and
malicious replicas log each message they receive and do nothing else.

The command serves until interrupted.

## Running a client

Interactive session. The client first asks for an ID. Then type `g` for GET,
`a` for ADD (followed by the record on the next line) and `e` to exit:

```
bftgset-client
```

Automated load. Each client, `c0`, `c1` and so on, runs `--reqs` rounds of
an ADD followed by a GET:

```
bftgset-client --auto --clients 4 --reqs 10
```

Other options are `--remote`, `--hosts-dir DIR` and `--timeout SECONDS`. The
timeout sets how long a request waits for a quorum of replies; without it a
request waits forever.

IDs and records must not be empty. They also must not contain a space, `.`,
`{`, `}` or `;`.

## Standalone Bracha broadcast

`bftgset-bracha` starts four local replicas on ports 5555 to 5558. These
replicas run only the reliable broadcast. The command then broadcasts one
value from the first replica. Give the value with `--value`, or the command
prompts for it:

```
bftgset-bracha --value hello
```

Each replica logs `Delivered value ...` when it delivers the value.

## Library use

The protocol logic does not depend on the network:

```python
from bftgset.gset import GSet
from bftgset.config import quorum_for
from bftgset.client import count_matching_replies

s = GSet()
s.add("apple")
assert s.exists("apple")
print(s.render(False))      # {apple}
print(quorum_for(4))        # Quorum(n=4, f=1, high=4, medium=3, low=2)
print(count_matching_replies({"a": "x,y", "b": "x", "c": "x"}, 1))  # x
```

- `bftgset.server.Replica.handle` takes received frames and returns the
  `Outgoing` messages a replica would send.
- `bftgset.broadcast.BrachaState` tracks echoes and votes for each value.
- `bftgset.server.ZmqServer` and `bftgset.server.start_servers` run
  replicas on ZeroMQ sockets.
- `bftgset.client.GSetClient` talks to running replicas with its `get` and
  `add` methods.

Clients and replicas log events to standard output and append them to
`log.txt` in the working directory. `bftgset-client` and `bftgset-server`
delete this file when they start.

## Limitations

- Replicas keep the set in memory only. It is lost when the process stops.
- The `malicious` behaviour does the same as `mute`. There is no model of
  actively misbehaving replicas.
- Only single-record ADD and whole-set GET are supported. There is no
  atomic multi-record operation.