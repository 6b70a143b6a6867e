# -*- coding: utf-8 -*-
"""
爬虫进程入口

用法:
    python crawl.py             执行一次爬取周期后退出
    python crawl.py --schedule  按 CRAWLER_CRON_SCHEDULE 周期执行
"""

import argparse
import sys

from config import Settings
from service.log_config import setup_logging
from service.scheduler import run_crawl_cycle, start_jobs


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Symbol 节点爬虫")
    parser.add_argument("--schedule", action="store_true", help="按 cron 表达式周期执行")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    setup_logging(settings)

    if args.schedule:
        start_jobs(settings)
        return 0

    success, _ = run_crawl_cycle(settings)
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
