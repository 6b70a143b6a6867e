# -*- coding: utf-8 -*-
"""
区块高度查询服务

文件功能:
    - 直接向信任节点查询 chain/info，计算中位高度，返回一个不低于中位数的节点的高度。
    - 结果带有短时缓存，缓存仅按时间过期，不主动失效。

公开接口:
    - 类 HeightCache: get() / put(value)
    - 类 HeightQueryService: get_height() -> NodeWatchHeight
    - 异常 HeightQueryError / HeightUnavailableError / NoConsensusNodeError

说明:
    - 这里的中位数使用 median_by_index（不取平均），与爬虫的 calc_median 不同。
    - 两个冷查询并发时都会访问网络，后写入的结果生效。
"""

import asyncio
import time
from typing import Callable, Optional, Sequence

from loguru import logger

from node_client import FetchFunc, NodeRestClient, fetch_node_rest
from workers.consensus import median_by_index
from workers.schemas import ChainInfo, NodeWatchHeight, parse_height


class HeightQueryError(Exception):
    pass


class HeightUnavailableError(HeightQueryError):
    """所有信任节点都没有返回有效高度"""


class NoConsensusNodeError(HeightQueryError):
    """没有高度不低于中位数的节点"""


class HeightCache:
    """单条高度缓存，按写入时间过期"""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._value: Optional[NodeWatchHeight] = None
        self._cached_at: Optional[float] = None

    def get(self) -> Optional[NodeWatchHeight]:
        if self._value is None or self._cached_at is None:
            return None
        age = self._clock() - self._cached_at
        if age >= self.ttl:
            return None
        logger.debug(f"height 缓存命中: {self._value.model_dump(by_alias=True)} (age: {age:.1f}s)")
        return self._value

    def put(self, value: NodeWatchHeight) -> None:
        self._value = value
        self._cached_at = self._clock()


class HeightQueryService:
    def __init__(
        self,
        trusted_nodes: Sequence[str],
        timeout: float,
        cache: HeightCache,
        fetch: FetchFunc = fetch_node_rest,
    ):
        self.trusted_nodes = list(trusted_nodes)
        self.timeout = timeout
        self.cache = cache
        self._fetch = fetch

    async def _fetch_chain_infos(self) -> list[Optional[ChainInfo]]:
        clients = [NodeRestClient(url, self.timeout, fetch=self._fetch) for url in self.trusted_nodes]
        results = await asyncio.gather(
            *(client.get_chain_info() for client in clients), return_exceptions=True
        )
        chain_infos: list[Optional[ChainInfo]] = []
        for client, result in zip(clients, results):
            if isinstance(result, BaseException):
                logger.error(f"获取 chain/info 时发生意外错误: {client.base_url} - {result}")
                chain_infos.append(None)
            else:
                chain_infos.append(result)
        return chain_infos

    async def get_height(self) -> NodeWatchHeight:
        """
        返回 {height, finalizedHeight}。

        :raises HeightUnavailableError: 没有任何有效高度
        :raises NoConsensusNodeError: 找不到高度不低于中位数的节点
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        chain_infos = await self._fetch_chain_infos()
        candidates = [
            (info, parse_height(info.height)) for info in chain_infos if info is not None
        ]
        heights = [height for _, height in candidates if height is not None]
        if not heights:
            logger.error("全部信任节点的 height 获取失败")
            raise HeightUnavailableError("全部信任节点的 height 获取失败")

        median = median_by_index(heights)
        logger.debug(f"有效结果数: {len(heights)}, 高度: {heights}, 中位数: {median}")

        # 按原查询顺序取第一个不低于中位数的节点
        selected = next(
            (info for info, height in candidates if height is not None and height >= median),
            None,
        )
        if selected is None:
            logger.error("找不到 height 不低于中位数的节点")
            raise NoConsensusNodeError("找不到 height 不低于中位数的节点")

        finalized = selected.latest_finalized_block
        result = NodeWatchHeight(
            height=parse_height(selected.height) or 0,
            finalized_height=(parse_height(finalized.height) or 0) if finalized is not None else 0,
        )
        self.cache.put(result)
        return result
