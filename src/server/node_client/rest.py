# -*- coding: utf-8 -*-
"""
节点 REST 接口的单次 GET 请求
"""
import asyncio
from typing import Any, Optional

import httpx
from loguru import logger

from .utils import join_url


async def _get_json(url: str, timeout: float) -> Optional[Any]:
    async with httpx.AsyncClient(timeout=timeout, headers={"Accept": "application/json"}) as client:
        try:
            resp = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"请求失败: {url} - {e!r}")
            return None

    if not resp.is_success:
        logger.warning(f"请求失败: {url} - HTTP {resp.status_code} {resp.reason_phrase}".rstrip())
        return None

    try:
        return resp.json()
    except ValueError as e:
        logger.error(f"响应体解析失败: {url} - {e}")
        return None


async def fetch_node_rest(base_url: str, path: str, timeout: float) -> Optional[Any]:
    """
    对节点 REST 接口发起一次带超时的 GET 请求并解析 JSON。

    任何失败（网络错误、非 2xx、超时、解析失败）都返回 None，不向调用方抛出异常，不重试。
    超时到达时进行中的请求会被取消并关闭连接。

    :param base_url: 节点基础 URL，例如 https://node.example:3001
    :param path: 接口路径，例如 /chain/info
    :param timeout: 超时时间（秒）
    :return: 解析后的 JSON，失败时为 None
    """
    url = join_url(base_url, path)
    logger.info(f"Fetching from {url}")
    try:
        return await asyncio.wait_for(_get_json(url, timeout), timeout)
    except asyncio.TimeoutError:
        logger.warning(f"请求超时 ({timeout}s)，已取消: {url}")
        return None
