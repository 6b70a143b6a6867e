# -*- coding: utf-8 -*-
"""
日志配置

文件功能:
    - 配置 loguru：控制台输出 + 按类别 (web / cron / app) 分文件、按天轮转的日志。
    - 类别通过 logger.contextualize(category=...) 附加，没有类别的记录写入 app。

公开接口:
    - setup_logging(settings): 初始化日志，重复调用时只生效一次。
    - LOG_CATEGORIES
"""

import sys

from loguru import logger

from config import Settings
from service.paths import get_log_dir

LOG_CATEGORIES = ("web", "cron", "app")
LOG_FORMAT = "{time:YYYY/MM/DD HH:mm:ss} [{level: <7}] {message}"

_configured = False


def _category_filter(category: str):
    def _filter(record) -> bool:
        return record["extra"].get("category", "app") == category
    return _filter


def setup_logging(settings: Settings) -> None:
    global _configured
    if _configured:
        return

    log_dir = get_log_dir(settings)
    logger.remove()
    logger.add(sys.stderr, level=settings.log_console_level or settings.log_level, format=LOG_FORMAT)
    for category in LOG_CATEGORIES:
        logger.add(
            str(log_dir / f"{category}-{{time:YYYY-MM-DD}}.log"),
            level=settings.log_file_level or settings.log_level,
            format=LOG_FORMAT,
            filter=_category_filter(category),
            rotation="00:00",
            retention=f"{settings.log_retention_days} days",
            compression="zip",
            encoding="utf-8",
            enqueue=True,
        )
    _configured = True

    logger.info(f"Log directory: {log_dir}")
    logger.info(f"Log retention: {settings.log_retention_days} days")
    logger.info(f"Log level: {settings.log_level}")
