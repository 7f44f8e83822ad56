import threading

import pytest

from filemeta.features.descriptors.host_index import HostIndex, NetworkAddress


@pytest.mark.unit
def test_ids_are_dense_and_stable():
    index = HostIndex()

    first = index.get_or_add(NetworkAddress.of("dn1", 9866))
    second = index.get_or_add(NetworkAddress.of("dn2", 9866))
    again = index.get_or_add(NetworkAddress.of("DN1 ", 9866))

    assert (first, second, again) == (0, 1, 0)
    assert len(index) == 2
    assert index.get_entry(1) == NetworkAddress("dn2", 9866)
    assert index.entries() == [NetworkAddress("dn1", 9866), NetworkAddress("dn2", 9866)]


@pytest.mark.unit
def test_unknown_ids_raise():
    index = HostIndex()
    index.get_or_add(NetworkAddress.of("dn1", 9866))

    with pytest.raises(IndexError):
        index.get_entry(1)
    with pytest.raises(IndexError):
        index.get_entry(-1)
    assert index.get_id(NetworkAddress.of("dn9", 9866)) is None
    assert NetworkAddress.of("dn9", 9866) not in index


@pytest.mark.unit
@pytest.mark.parametrize(
    "endpoint,expected",
    [
        ("datanode-1:9866", NetworkAddress("datanode-1", 9866)),
        ("[::1]:31000", NetworkAddress("::1", 31000)),
        ("localhost", NetworkAddress("localhost", 50010)),
    ],
)
def test_parse_endpoint(endpoint, expected):
    assert NetworkAddress.parse(endpoint, default_port=50010) == expected


@pytest.mark.unit
def test_concurrent_get_or_add_assigns_each_host_once():
    index = HostIndex()
    hosts = [NetworkAddress.of(f"dn{i}", 9866) for i in range(50)]
    barrier = threading.Barrier(8)
    results: list[dict[NetworkAddress, int]] = []

    def worker(offset: int) -> None:
        barrier.wait()
        seen = {}
        for i in range(len(hosts)):
            host = hosts[(i + offset) % len(hosts)]
            seen[host] = index.get_or_add(host)
        results.append(seen)

    threads = [threading.Thread(target=worker, args=(n * 7,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(index) == 50
    assert sorted(index.get_id(h) for h in hosts) == list(range(50))
    for seen in results:
        assert all(index.get_entry(host_id) == host for host, host_id in seen.items())
