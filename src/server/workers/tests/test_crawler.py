# -*- coding: utf-8 -*-

"""
测试爬取周期：
 - 信任节点超时 / 返回非 2xx 时的容错
 - 按 host 去重
 - 中位高度过滤（严格不等式边界）
 - 分块并发上限
 - 快照写入失败不抛出异常

通过注入 fetch 与 write_file 隔离网络与文件系统；
另有一例经由真实 REST 客户端、在 httpx 传输层模拟网络。
"""

import asyncio
import json
import os
import tempfile
import time

import httpx

import node_client.rest as rest
from config import Settings
from workers.crawler import Crawler, chunk_list, deduplicate_peers
from workers.schemas import NodeInfo
from workers.snapshot import write_snapshot


def chain_info(height):
    return {
        "scoreHigh": "9",
        "scoreLow": "0",
        "height": str(height),
        "latestFinalizedBlock": {"finalizationEpoch": 1, "finalizationPoint": 1, "height": str(height), "hash": "hash"},
    }


def node_info(name):
    return {
        "version": 1234,
        "publicKey": "pub",
        "roles": 1,
        "port": 3000,
        "host": "host",
        "friendlyName": name,
        "nodePublicKey": "nodepub",
    }


NODE_SERVER = {"serverInfo": {"restVersion": "1.0.0"}}


class FakeNetwork:
    """按 URL 返回固定数据的假网络，未登记的 URL 视为请求失败"""

    def __init__(self, peers_by_node=None, peers=None):
        self.peers_by_node = peers_by_node or {}
        self.peers = peers or {}
        self.slow_hosts = set()
        self.calls = []

    async def fetch(self, base_url, path, timeout):
        self.calls.append(f"{base_url}{path}")
        if "timeout" in base_url:
            # 模拟客户端自身的超时中断
            await asyncio.sleep(timeout)
            return None
        if path == "/node/peers":
            return self.peers_by_node.get(base_url)
        host = base_url.split("://", 1)[1].rsplit(":", 1)[0]
        if host in self.slow_hosts:
            await asyncio.sleep(10)
            return None
        if host not in self.peers:
            return None
        name, height = self.peers[host]
        return {"/chain/info": chain_info(height), "/node/info": node_info(name), "/node/server": NODE_SERVER}.get(path)


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, path, peers):
        self.calls.append((path, json.loads(json.dumps([p.model_dump(mode="json", by_alias=True) for p in peers]))))


def make_settings(trusted_nodes, **overrides):
    values = dict(
        trusted_nodes=trusted_nodes,
        chunk_num=2,
        timeout_ms=1000,
        height_threshold=10,
        snapshot_path="public/nodeWatchPeers.json",
    )
    values.update(overrides)
    return Settings(**values)


def run_crawler(network, settings, writer):
    return asyncio.run(Crawler(settings, fetch=network.fetch, write_file=writer).run())


def test_timeout_trusted_node_and_slow_peer_do_not_block():
    network = FakeNetwork(
        peers_by_node={"http://mock1": [{"host": "host1"}, {"host": "slow"}]},
        peers={"host1": ("A", 100)},
    )
    network.slow_hosts.add("slow")
    writer = Recorder()

    started = time.perf_counter()
    success, _ = run_crawler(network, make_settings(["http://mock1", "http://timeout"], timeout_ms=50), writer)
    elapsed = time.perf_counter() - started

    assert success
    assert elapsed < 2.0
    assert len(writer.calls) == 1
    _, peers = writer.calls[0]
    assert len(peers) == 1
    assert peers[0]["name"] == "A"


def test_peers_non_success_status_writes_empty_snapshot():
    network = FakeNetwork(peers_by_node={})
    writer = Recorder()

    success, message = run_crawler(network, make_settings(["http://mock404"]), writer)

    assert success, message
    assert writer.calls == [("public/nodeWatchPeers.json", [])]


def test_peer_at_cutoff_is_excluded():
    network = FakeNetwork(
        peers_by_node={
            "http://mock1": [{"host": "host1"}, {"host": "host2"}],
            "http://mock2": [{"host": "host1"}, {"host": "host2"}],
        },
        peers={"host1": ("A", 100), "host2": ("B", 80)},
    )
    writer = Recorder()

    run_crawler(network, make_settings(["http://mock1", "http://mock2"], height_threshold=10), writer)

    # 中位数 90，阈值 10 → 80 不大于 80，被排除
    _, peers = writer.calls[0]
    assert [p["name"] for p in peers] == ["A"]


def test_both_peers_above_cutoff_are_kept():
    network = FakeNetwork(
        peers_by_node={"http://mock1": [{"host": "host1"}, {"host": "host2"}]},
        peers={"host1": ("A", 100), "host2": ("B", 50)},
    )
    writer = Recorder()

    run_crawler(network, make_settings(["http://mock1"], height_threshold=40), writer)

    # 中位数 75，截止 35
    _, peers = writer.calls[0]
    assert sorted(p["name"] for p in peers) == ["A", "B"]


def test_duplicate_hosts_are_probed_once():
    network = FakeNetwork(
        peers_by_node={
            "http://mock1": [{"host": "host1"}, {"host": "host2"}],
            "http://mock2": [{"host": "host2"}, {"host": "host1"}],
        },
        peers={"host1": ("A", 100), "host2": ("B", 100)},
    )
    writer = Recorder()

    run_crawler(network, make_settings(["http://mock1", "http://mock2"]), writer)

    chain_calls = [url for url in network.calls if url.endswith("/chain/info")]
    assert chain_calls.count("https://host1:3001/chain/info") == 1
    assert chain_calls.count("https://host2:3001/chain/info") == 1
    _, peers = writer.calls[0]
    assert len(peers) == 2


def test_deduplicate_first_occurrence_wins():
    peers = [
        NodeInfo(host="host1", friendly_name="first"),
        NodeInfo(host="", friendly_name="no-host"),
        NodeInfo(host="Host1", friendly_name="upper"),
        NodeInfo(host="host1", friendly_name="second"),
        None,
        NodeInfo(host="host2", friendly_name="other"),
    ]

    unique = deduplicate_peers(peers)

    assert [(p.host, p.friendly_name) for p in unique] == [
        ("host1", "first"),
        ("Host1", "upper"),
        ("host2", "other"),
    ]


def test_chunk_list():
    assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk_list([], 10) == []


def test_crawl_respects_chunk_size_and_order():
    hosts = [f"host{i}" for i in range(5)]
    in_flight = 0
    max_in_flight = 0

    async def fetch(base_url, path, timeout):
        nonlocal in_flight, max_in_flight
        host = base_url.split("://", 1)[1].rsplit(":", 1)[0]
        if path == "/chain/info":
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return chain_info(100)
        if path == "/node/info":
            return node_info(host)
        return NODE_SERVER

    crawler = Crawler(make_settings([], chunk_num=2), fetch=fetch, write_file=Recorder())
    records = asyncio.run(crawler.crawl_peers([NodeInfo(host=h) for h in hosts]))

    assert [r.name for r in records] == hosts
    assert max_in_flight == 2


def test_write_failure_is_reported_not_raised():
    network = FakeNetwork(
        peers_by_node={"http://mock1": [{"host": "host1"}]},
        peers={"host1": ("A", 100)},
    )

    def failing_writer(path, peers):
        raise OSError("disk full")

    success, message = run_crawler(network, make_settings(["http://mock1"]), failing_writer)

    assert success is False
    assert "disk full" in message


def test_snapshot_file_is_written_with_camel_case_fields():
    network = FakeNetwork(
        peers_by_node={"http://mock1": [{"host": "host1"}, {"host": "host2"}]},
        peers={"host1": ("A", 100), "host2": ("B", 80)},
    )

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "public", "nodeWatchPeers.json")
        success, _ = run_crawler(network, make_settings(["http://mock1"], snapshot_path=path), write_snapshot)
        assert success
        with open(path, encoding="utf-8") as f:
            peers = json.load(f)

    assert len(peers) == 1
    peer = peers[0]
    assert peer["name"] == "A"
    assert peer["height"] == 100
    assert peer["finalizedHeight"] == 100
    assert peer["isSslEnabled"] is True
    assert peer["endpoint"] == "http://host1:3000"
    assert peer["mainPublicKey"] == "pub"
    assert peer["restVersion"] == "1.0.0"
    assert peer["balance"] == 0
    assert peer["isHealthy"] is None
    assert isinstance(peer["responseTime"], int)


def test_slow_peers_do_not_starve_healthy_ones_through_rest_client(monkeypatch):
    fast_hosts = [f"fast{i}" for i in range(5)]
    slow_hosts = [f"slow{i}" for i in range(5)]
    peer_list = [{"host": host} for pair in zip(slow_hosts, fast_hosts) for host in pair]

    async def handler(request):
        host, path = request.url.host, request.url.path
        if host == "trusted" and path == "/node/peers":
            return httpx.Response(200, json=peer_list)
        if host.startswith("slow"):
            await asyncio.sleep(1)
            return httpx.Response(200, json=chain_info(100))
        routes = {"/chain/info": chain_info(100), "/node/info": node_info(host), "/node/server": NODE_SERVER}
        return httpx.Response(200, json=routes[path])

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        rest.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    writer = Recorder()
    settings = make_settings(["http://trusted:3000"], chunk_num=10, timeout_ms=300)

    started = time.perf_counter()
    success, message = asyncio.run(Crawler(settings, write_file=writer).run())
    elapsed = time.perf_counter() - started

    assert success, message
    _, peers = writer.calls[0]
    assert sorted(p["name"] for p in peers) == fast_hosts
    assert all(p["isSslEnabled"] for p in peers)
    # 慢节点在 https 与 http 上各消耗一个超时
    assert elapsed < 1.5
