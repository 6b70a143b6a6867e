# -*- coding: utf-8 -*-

"""
节点爬虫

文件功能:
    - 串联一次完整的爬取周期：从信任节点发现 peer、按 host 去重、分块并发探测、
      计算共识高度、过滤落后节点、按响应时间排序并写入快照文件。

公开接口:
    - 类 Crawler:
        - 方法: run() -> (success, message)
        - 方法: discover_peers() -> list[NodeInfo]
        - 方法: crawl_peers(peers) -> list[NodeWatchPeer]
    - 函数 deduplicate_peers(peers) -> list[NodeInfo]
    - 函数 chunk_list(items, size) -> list[list]

内部方法:
    - _run_step(): 执行并记录单个步骤

公开接口的 pydantic 模型:
    - NodeInfo, NodeWatchPeer
"""

import asyncio
from typing import Callable, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from config import Settings
from node_client import FetchFunc, NodeRestClient, fetch_node_rest
from .consensus import calc_median, filter_stale_peers, sort_by_response_time
from .prober import PeerProber
from .schemas import NodeInfo, NodeWatchPeer
from .snapshot import write_snapshot

T = TypeVar("T")

WriteFunc = Callable[[str, Sequence[NodeWatchPeer]], None]


def chunk_list(items: Sequence[T], size: int) -> list[list[T]]:
    """按固定大小切分列表"""
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def deduplicate_peers(peers: Sequence[Optional[NodeInfo]]) -> list[NodeInfo]:
    """
    按 host 去重（区分大小写、完全匹配），保留第一次出现的项，丢弃没有 host 的项。
    输出顺序为各 host 首次出现的顺序。
    """
    seen: set[str] = set()
    unique: list[NodeInfo] = []
    for peer in peers:
        if peer is None or not peer.host:
            continue
        if peer.host in seen:
            continue
        seen.add(peer.host)
        unique.append(peer)
    return unique


class Crawler:
    """执行一次爬取周期的类"""

    def __init__(
        self,
        settings: Settings,
        fetch: FetchFunc = fetch_node_rest,
        write_file: WriteFunc = write_snapshot,
    ):
        self.settings = settings
        self._fetch = fetch
        self._write_file = write_file
        self.prober = PeerProber(
            timeout=settings.timeout,
            protocols=settings.peer_protocols,
            fetch=fetch,
        )

    async def discover_peers(self) -> list[NodeInfo]:
        """
        向每个信任节点请求 /node/peers 并按信任节点顺序合并。

        某个信任节点失败时只是不贡献 peer，不影响其他节点。
        """
        clients = [
            NodeRestClient(url, self.settings.timeout, fetch=self._fetch)
            for url in self.settings.trusted_nodes
        ]
        results = await asyncio.gather(
            *(client.get_node_peers() for client in clients), return_exceptions=True
        )
        all_peers: list[NodeInfo] = []
        for client, result in zip(clients, results):
            if isinstance(result, BaseException):
                logger.error(f"从信任节点获取 peers 时发生意外错误: {client.base_url} - {result}")
                continue
            if result is None:
                logger.warning(f"信任节点未返回 peers: {client.base_url}")
                continue
            all_peers.extend(result)
        return all_peers

    async def crawl_peers(self, peers: Sequence[NodeInfo]) -> list[NodeWatchPeer]:
        """
        分块探测：块与块之间串行，块内全部并发，同时在途的探测数不超过 chunk_num。
        结果保持块顺序与块内顺序。
        """
        records: list[NodeWatchPeer] = []
        for chunk in chunk_list(peers, self.settings.chunk_num):
            results = await asyncio.gather(
                *(self.prober.probe(peer) for peer in chunk), return_exceptions=True
            )
            for peer, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    logger.error(f"探测 peer 时发生意外错误: {peer.host} - {result}")
                elif result is not None:
                    records.append(result)
        return records

    def _run_step(self, step_name: str, message: str) -> None:
        logger.info(f"{step_name} {message}")

    async def run(self) -> Tuple[bool, str]:
        """
        执行完整的爬取周期：
            1) 从信任节点发现 peer
            2) 按 host 去重
            3) 分块探测
            4) 计算中位高度并过滤落后节点
            5) 按响应时间排序并写入快照

        :return: (success, message) 元组；只有快照写入失败时 success 为 False
        """
        logger.info("Crawler is starting...")
        logger.info(f"Trusted nodes: {', '.join(self.settings.trusted_nodes)}")

        all_peers = await self.discover_peers()
        self._run_step("[1/5]", f"共发现 {len(all_peers)} 个 peer")

        unique_peers = deduplicate_peers(all_peers)
        self._run_step("[2/5]", f"Unique node peers count: {len(unique_peers)}")

        records = await self.crawl_peers(unique_peers)
        self._run_step("[3/5]", f"探测成功 {len(records)} 个节点")

        heights = [record.height for record in records if record.height is not None]
        median = calc_median(heights)
        if median is not None:
            logger.info(f"Median height: {median}")
        else:
            logger.error("没有可用的 height，无法计算中位数，跳过过滤")
        filtered = filter_stale_peers(records, median, self.settings.height_threshold)
        self._run_step("[4/5]", f"过滤后剩余 {len(filtered)} 个节点 (阈值 {self.settings.height_threshold})")

        ordered = sort_by_response_time(filtered)
        try:
            self._write_file(self.settings.snapshot_path, ordered)
        except OSError as e:
            logger.exception(f"写入快照失败: {self.settings.snapshot_path}")
            return False, f"写入快照失败: {e}"
        self._run_step("[5/5]", f"快照已写入 {self.settings.snapshot_path}")
        return True, f"已写入 {len(ordered)} 个节点"
