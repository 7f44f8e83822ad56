"""Shared interning table for block-location hosts.

A catalog session creates one HostIndex and passes it to every load so
block lists can store small integer ids instead of repeated host strings.
Ids are dense (0..N-1), assigned on first sight and never reused.

Reads are lock-free: an id is published in the lookup dict only after its
endpoint has been appended to the list, so any id a reader obtains already
resolves. Assignment of new ids is serialized by a single lock.
"""

import threading
from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class NetworkAddress:
    """A (host, port) endpoint. Hosts are compared case-insensitively."""

    host: str
    port: int

    @classmethod
    def of(cls, host: str, port: int) -> "NetworkAddress":
        return cls(host=host.strip().lower(), port=int(port))

    @classmethod
    def parse(cls, endpoint: str, default_port: int = 0) -> "NetworkAddress":
        """Parse "host:port" (or "[v6]:port"); a missing port uses default_port."""
        endpoint = endpoint.strip()
        if endpoint.startswith("["):
            host, _, rest = endpoint[1:].partition("]")
            port = rest.lstrip(":")
        else:
            host, sep, port = endpoint.rpartition(":")
            if not sep or not port.isdigit():
                host, port = endpoint, ""
        return cls.of(host, int(port) if port else default_port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class HostIndex:
    """Append-only bijection between NetworkAddress and integer id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[NetworkAddress] = []
        self._ids: dict[NetworkAddress, int] = {}

    def get_or_add(self, address: NetworkAddress) -> int:
        """Return the id for address, assigning the next free id on first use."""
        host_id = self._ids.get(address)
        if host_id is not None:
            return host_id
        with self._lock:
            host_id = self._ids.get(address)
            if host_id is None:
                host_id = len(self._entries)
                self._entries.append(address)
                self._ids[address] = host_id
            return host_id

    def get_id(self, address: NetworkAddress) -> int | None:
        return self._ids.get(address)

    def get_entry(self, host_id: int) -> NetworkAddress:
        """Return the endpoint for an id.

        Raises:
            IndexError: If the id was never assigned by this index
        """
        if host_id < 0:
            raise IndexError(f"Invalid host id: {host_id}")
        return self._entries[host_id]

    def entries(self) -> list[NetworkAddress]:
        """Return a copy of all endpoints in id order."""
        return list(self._entries[: len(self._ids)])

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, address: object) -> bool:
        return address in self._ids
