# -*- coding: utf-8 -*-

"""
通用数据模型（schemas）

文件功能:
    - 定义节点 REST 接口返回体与爬虫产出记录的 pydantic 模型。
    - JSON 字段使用 camelCase，Python 属性使用 snake_case。

公开接口:
    - 类 LatestFinalizedBlock / ChainInfo: /chain/info 返回体
    - 类 NodeInfo: /node/info 返回体，也是 /node/peers 列表中的单项
    - 类 ServerInfo / NodeServer: /node/server 返回体
    - 类 NodeWatchPeer: 一次探测成功后产出的节点记录（快照的组成单元）
    - 类 NodeWatchHeight: 高度查询结果
    - 类 KnownPeerEndpoint / KnownPeerMetadata / KnownPeer: P2P 节点投影
    - 函数 parse_height(value) -> Optional[int]

内部方法:
    - 无。
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


def parse_height(value: Any) -> Optional[int]:
    """把区块高度（十进制字符串或整数）解析为整数，无法解析时返回 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class LatestFinalizedBlock(CamelModel):
    finalization_epoch: int = 0
    finalization_point: int = 0
    height: str = ""
    hash: str = ""


class ChainInfo(CamelModel):
    height: str
    latest_finalized_block: Optional[LatestFinalizedBlock] = None
    score_high: Optional[str] = None
    score_low: Optional[str] = None


class NodeInfo(CamelModel):
    version: int = 0
    public_key: str = ""
    network_generation_hash_seed: Optional[str] = None
    roles: int = 0
    port: int = 0
    network_identifier: Optional[int] = None
    host: str = ""
    friendly_name: str = ""
    node_public_key: Optional[str] = None


class ServerInfo(CamelModel):
    rest_version: str
    deployment: Optional[dict] = None


class NodeServer(CamelModel):
    server_info: ServerInfo


class NodeWatchPeer(CamelModel):
    """节点记录：构建后不再修改"""
    model_config = ConfigDict(frozen=True)

    balance: int = 0
    endpoint: str
    finalized_epoch: int
    finalized_hash: str
    finalized_height: Optional[int]
    finalized_point: int
    height: Optional[int]
    is_healthy: Optional[bool] = None
    is_ssl_enabled: bool
    main_public_key: str
    name: str
    node_public_key: Optional[str] = None
    rest_version: str
    roles: int
    version: str
    host: str
    port: int
    response_time: Optional[int] = None


class NodeWatchHeight(CamelModel):
    height: int
    finalized_height: int


class KnownPeerEndpoint(BaseModel):
    host: Optional[str] = None
    port: Optional[int] = None


class KnownPeerMetadata(BaseModel):
    name: Optional[str] = None
    roles: str


class KnownPeer(CamelModel):
    public_key: Optional[str] = None
    endpoint: KnownPeerEndpoint
    metadata: KnownPeerMetadata
