# -*- coding: utf-8 -*-

"""
节点探测器

文件功能:
    - 对单个 peer 判断可达性（先 HTTPS，失败后回退 HTTP），
      再并发获取 node/info 与 node/server，组装节点记录。

公开接口:
    - 类 PeerProber:
        - 方法: probe(peer) -> Optional[NodeWatchPeer]

内部方法:
    - _race_timeout(): 外层超时竞速，超时只停止等待，不取消内部请求
    - _fetch_chain_info(): 按协议顺序获取 chain/info
    - _build_record(): 组装节点记录

公开接口的 pydantic 模型:
    - NodeWatchPeer
"""

import asyncio
import time
from typing import Awaitable, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from config import DEFAULT_PEER_PROTOCOLS
from node_client import FetchFunc, NodeRestClient, fetch_node_rest, to_hex_dot_string
from .schemas import ChainInfo, NodeInfo, NodeServer, NodeWatchPeer, parse_height

T = TypeVar("T")

# 下游消费者始终使用明文端口
PLAIN_PORT = 3000


class PeerProber:
    """探测单个 peer 的类"""

    def __init__(
        self,
        timeout: float,
        protocols: Optional[Sequence[Tuple[str, int]]] = None,
        fetch: FetchFunc = fetch_node_rest,
    ):
        """
        :param timeout: 单次请求超时（秒），同时用作外层竞速超时
        :param protocols: (scheme, port) 顺序列表，第一项为首选，其余为回退
        :param fetch: REST 请求函数，便于测试替换
        """
        self.timeout = timeout
        self.protocols = list(protocols or DEFAULT_PEER_PROTOCOLS)
        self._fetch = fetch
        # 外层超时后被放弃、仍在运行的请求
        self._abandoned: set[asyncio.Task] = set()

    @property
    def abandoned(self) -> frozenset:
        """外层超时后仍未结束的请求任务"""
        return frozenset(self._abandoned)

    def _client(self, host: str, scheme: str, port: int) -> NodeRestClient:
        return NodeRestClient(f"{scheme}://{host}:{port}", self.timeout, fetch=self._fetch)

    async def _race_timeout(self, awaitable: Awaitable[Optional[T]]) -> Optional[T]:
        """
        等待 awaitable，超过 timeout 则返回 None。

        超时后内部任务不会被取消，只是不再等待它；任务仍由 REST 客户端自身的超时结束。
        """
        task = asyncio.ensure_future(awaitable)
        done, _ = await asyncio.wait({task}, timeout=self.timeout)
        if task in done:
            return task.result()
        self._abandoned.add(task)
        task.add_done_callback(self._abandoned.discard)
        return None

    async def _fetch_chain_info(self, host: str) -> Tuple[Optional[ChainInfo], str, int]:
        scheme, port = self.protocols[0]
        for index, (scheme, port) in enumerate(self.protocols):
            if index > 0:
                logger.warning(f"Node Peer is not reachable: {host}，回退到 {scheme}:{port}")
            chain_info = await self._race_timeout(self._client(host, scheme, port).get_chain_info())
            if chain_info is not None:
                return chain_info, scheme, port
        return None, scheme, port

    async def probe(self, peer: NodeInfo) -> Optional[NodeWatchPeer]:
        """
        探测一个 peer。

        :param peer: /node/peers 中的单项，只使用 host
        :return: 节点记录；任一步骤失败时返回 None，不抛出异常
        """
        host = peer.host
        try:
            chain_info, scheme, port = await self._fetch_chain_info(host)
            if chain_info is None:
                logger.warning(f"Node Peer 的 chain/info 获取失败，已跳过: {host}")
                return None
            if chain_info.latest_finalized_block is None:
                logger.warning(f"Node Peer 的 chain/info 缺少 latestFinalizedBlock，已跳过: {host}")
                return None

            client = self._client(host, scheme, port)
            started = time.perf_counter()
            node_info, node_server = await asyncio.gather(
                self._race_timeout(client.get_node_info()),
                self._race_timeout(client.get_node_server()),
            )
            response_time = int((time.perf_counter() - started) * 1000)
            if node_info is None or node_server is None:
                logger.warning(f"Node Peer 的 node/info 或 node/server 获取失败，已跳过: {host}")
                return None

            return self._build_record(host, scheme, chain_info, node_info, node_server, response_time)
        except Exception as e:
            logger.error(f"Error accessing Node Peer: {host} - {e}")
            return None

    @staticmethod
    def _build_record(
        host: str,
        scheme: str,
        chain_info: ChainInfo,
        node_info: NodeInfo,
        node_server: NodeServer,
        response_time: int,
    ) -> NodeWatchPeer:
        finalized = chain_info.latest_finalized_block
        return NodeWatchPeer(
            endpoint=f"http://{host}:{PLAIN_PORT}",
            finalized_epoch=finalized.finalization_epoch,
            finalized_hash=finalized.hash,
            finalized_height=parse_height(finalized.height),
            finalized_point=finalized.finalization_point,
            height=parse_height(chain_info.height),
            is_ssl_enabled=scheme == "https",
            main_public_key=node_info.public_key,
            name=node_info.friendly_name,
            node_public_key=node_info.node_public_key,
            rest_version=node_server.server_info.rest_version,
            roles=node_info.roles,
            version=to_hex_dot_string(node_info.version),
            host=host,
            port=node_info.port,
            response_time=response_time,
        )
