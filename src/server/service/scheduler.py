# -*- coding: utf-8 -*-
"""
爬虫定时任务

文件功能:
    - 按 cron 表达式周期性执行爬取周期。
    - 单次周期失败只记录日志，不影响之后的周期。

公开接口:
    - run_crawl_cycle(settings) -> (success, message)
    - create_scheduler(settings) -> BlockingScheduler
    - start_jobs(settings)
"""

import asyncio
from typing import Tuple

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from config import Settings
from service.paths import get_snapshot_path
from workers.crawler import Crawler


def run_crawl_cycle(settings: Settings) -> Tuple[bool, str]:
    """在独立的事件循环中执行一次爬取周期"""
    with logger.contextualize(category="cron"):
        try:
            cycle_settings = settings.model_copy(update={"snapshot_path": str(get_snapshot_path(settings))})
            success, message = asyncio.run(Crawler(cycle_settings).run())
        except Exception as e:
            logger.exception("爬取周期发生意外错误")
            return False, f"爬取周期发生意外错误: {e}"
        if success:
            logger.info(f"[SUCCESS] {message}")
        else:
            logger.error(f"[ERROR] {message}")
        return success, message


def create_scheduler(settings: Settings) -> BlockingScheduler:
    scheduler = BlockingScheduler()
    # 标准五段 crontab: 分 时 日 月 周
    scheduler.add_job(
        run_crawl_cycle,
        CronTrigger.from_crontab(settings.cron_schedule),
        args=[settings],
        id="crawler_job",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def start_jobs(settings: Settings) -> None:
    logger.info(f"Starting crawler with schedule: {settings.cron_schedule}")
    scheduler = create_scheduler(settings)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("定时任务已停止")
        scheduler.shutdown()
