# -*- coding: utf-8 -*-
"""
配置加载

文件功能:
    - 从环境变量 (以及 .env 文件) 读取爬虫、高度查询与日志相关的配置。
    - 数值配置缺失、非数字或不为正数时回退到默认值（HEIGHT_THRESHOLD 允许为 0）。

公开接口:
    - 类 Settings(BaseModel): 全部配置项。
    - 方法 Settings.from_env(env) -> Settings
    - 函数 get_trusted_nodes(env) -> list[str]
    - 函数 parse_peer_protocols(raw) -> list[tuple[str, int]]
"""

import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_CHUNK_NUM = 10
DEFAULT_TIMEOUT_MS = 3000
DEFAULT_HEIGHT_THRESHOLD = 20
DEFAULT_HEIGHT_CACHE_DURATION_MS = 30 * 1000
DEFAULT_HEIGHT_TIMEOUT_MS = 2000
DEFAULT_PEER_PROTOCOLS = [("https", 3001), ("http", 3000)]
DEFAULT_CRON_SCHEDULE = "*/10 * * * *"
DEFAULT_SNAPSHOT_PATH = os.path.join("public", "nodeWatchPeers.json")
DEFAULT_PORT = 3000


class Settings(BaseModel):
    trusted_nodes: list[str] = []
    chunk_num: int = DEFAULT_CHUNK_NUM
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    height_threshold: int = DEFAULT_HEIGHT_THRESHOLD
    height_cache_duration_ms: int = DEFAULT_HEIGHT_CACHE_DURATION_MS
    height_timeout_ms: int = DEFAULT_HEIGHT_TIMEOUT_MS
    peer_protocols: list[tuple[str, int]] = DEFAULT_PEER_PROTOCOLS
    cron_schedule: str = DEFAULT_CRON_SCHEDULE
    snapshot_path: str = DEFAULT_SNAPSHOT_PATH
    port: int = DEFAULT_PORT
    log_dir: str = "logs"
    log_level: str = "INFO"
    log_file_level: Optional[str] = None
    log_console_level: Optional[str] = None
    log_retention_days: int = 14

    @property
    def timeout(self) -> float:
        """爬虫单次请求超时（秒）"""
        return self.timeout_ms / 1000

    @property
    def height_timeout(self) -> float:
        return self.height_timeout_ms / 1000

    @property
    def height_cache_duration(self) -> float:
        return self.height_cache_duration_ms / 1000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        从环境变量构建配置。

        :param env: 环境变量映射，默认使用 os.environ
        :return: Settings 实例
        """
        env = os.environ if env is None else env
        level = (env.get("LOG_LEVEL") or "INFO").upper()
        threshold = _to_int(env.get("HEIGHT_THRESHOLD"))
        return cls(
            trusted_nodes=get_trusted_nodes(env),
            chunk_num=_positive_int(env.get("CHUNK_NUM")) or DEFAULT_CHUNK_NUM,
            timeout_ms=_positive_int(env.get("TIMEOUT_MS")) or DEFAULT_TIMEOUT_MS,
            # 阈值允许显式设置为 0
            height_threshold=DEFAULT_HEIGHT_THRESHOLD if threshold is None or threshold < 0 else threshold,
            height_cache_duration_ms=_positive_int(env.get("HEIGHT_CACHE_DURATION_MS")) or DEFAULT_HEIGHT_CACHE_DURATION_MS,
            height_timeout_ms=_positive_int(env.get("HEIGHT_TIMEOUT_MS")) or DEFAULT_HEIGHT_TIMEOUT_MS,
            peer_protocols=parse_peer_protocols(env.get("PEER_PROTOCOLS")),
            cron_schedule=(env.get("CRAWLER_CRON_SCHEDULE") or DEFAULT_CRON_SCHEDULE).strip(),
            snapshot_path=env.get("SNAPSHOT_PATH") or DEFAULT_SNAPSHOT_PATH,
            port=_positive_int(env.get("PORT")) or DEFAULT_PORT,
            log_dir=env.get("LOG_DIR") or "logs",
            log_level=level,
            log_file_level=(env.get("LOG_FILE_LEVEL") or level).upper(),
            log_console_level=(env.get("LOG_CONSOLE_LEVEL") or level).upper(),
            log_retention_days=_positive_int(env.get("LOG_RETENTION_DAYS")) or 14,
        )


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _positive_int(value: Optional[str]) -> Optional[int]:
    """非正数视为未设置"""
    number = _to_int(value)
    return number if number is not None and number > 0 else None


def get_trusted_nodes(env: Optional[Mapping[str, str]] = None) -> list[str]:
    """读取 TRUSTED_NODES（逗号分隔），去除空白与空项"""
    env = os.environ if env is None else env
    return [url.strip() for url in (env.get("TRUSTED_NODES") or "").split(",") if url.strip()]


def parse_peer_protocols(raw: Optional[str]) -> list[tuple[str, int]]:
    """
    解析 "https:3001,http:3000" 形式的协议/端口列表。
    任一项格式不正确时整体回退到默认值。
    """
    if not raw or not raw.strip():
        return list(DEFAULT_PEER_PROTOCOLS)
    pairs: list[tuple[str, int]] = []
    for item in raw.split(","):
        scheme, _, port = item.strip().partition(":")
        scheme = scheme.strip().lower()
        if scheme not in ("http", "https") or not port.strip().isdigit():
            return list(DEFAULT_PEER_PROTOCOLS)
        pairs.append((scheme, int(port)))
    return pairs
