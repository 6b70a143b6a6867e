# -*- coding: utf-8 -*-
"""
统一的路径管理服务。

文件功能:
    - 集中管理快照文件与日志目录等关键路径。
    - 相对路径以进程工作目录为基准解析。

公开接口:
    - get_snapshot_path(settings): 获取节点快照文件的绝对路径。
    - get_log_dir(settings): 获取日志目录的绝对路径（不存在时创建）。
"""

from pathlib import Path

from config import Settings


def _resolve(path: str) -> Path:
    p = Path(path)
    return p if p.is_absolute() else Path.cwd() / p


def get_snapshot_path(settings: Settings) -> Path:
    """获取节点快照文件路径，默认为 public/nodeWatchPeers.json"""
    return _resolve(settings.snapshot_path)


def get_log_dir(settings: Settings) -> Path:
    log_dir = _resolve(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir
