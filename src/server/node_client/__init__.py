# -*- coding: utf-8 -*-
"""
节点 REST 客户端

负责与 Symbol 节点的 REST 接口交互，并把返回体校验为对应的 pydantic 模型。

公开接口:
    - 函数 fetch_node_rest(base_url, path, timeout) -> Optional[Any]
    - 类 NodeRestClient
        - 方法: get_chain_info() -> Optional[ChainInfo]
        - 方法: get_node_info() -> Optional[NodeInfo]
        - 方法: get_node_server() -> Optional[NodeServer]
        - 方法: get_node_peers() -> Optional[list[NodeInfo]]
"""
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from workers.schemas import ChainInfo, NodeInfo, NodeServer
from .rest import fetch_node_rest
from .utils import join_url, to_hex_dot_string

FetchFunc = Callable[[str, str, float], Awaitable[Optional[Any]]]
ModelT = TypeVar("ModelT", bound=BaseModel)


class NodeRestClient:
    """封装了对单个节点 REST 接口的读取"""

    def __init__(self, base_url: str, timeout: float, fetch: FetchFunc = fetch_node_rest):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._fetch = fetch

    async def _get_model(self, path: str, model: Type[ModelT]) -> Optional[ModelT]:
        data = await self._fetch(self.base_url, path, self.timeout)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"返回体格式不正确: {join_url(self.base_url, path)} - {e.error_count()} 处错误")
            return None

    async def get_chain_info(self) -> Optional[ChainInfo]:
        return await self._get_model("/chain/info", ChainInfo)

    async def get_node_info(self) -> Optional[NodeInfo]:
        return await self._get_model("/node/info", NodeInfo)

    async def get_node_server(self) -> Optional[NodeServer]:
        return await self._get_model("/node/server", NodeServer)

    async def get_node_peers(self) -> Optional[list[NodeInfo]]:
        """
        获取节点已知的 peer 列表。

        列表中无法校验的单项会被跳过；整体不是列表时视为失败。
        """
        data = await self._fetch(self.base_url, "/node/peers", self.timeout)
        if data is None:
            return None
        if not isinstance(data, list):
            logger.error(f"peer 列表格式不正确: {join_url(self.base_url, '/node/peers')}")
            return None
        peers: list[NodeInfo] = []
        for item in data:
            try:
                peers.append(NodeInfo.model_validate(item))
            except ValidationError:
                logger.warning(f"跳过无法解析的 peer: {item!r}")
        return peers


__all__ = ["FetchFunc", "NodeRestClient", "fetch_node_rest", "join_url", "to_hex_dot_string"]
