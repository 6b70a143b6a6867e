# -*- coding: utf-8 -*-

"""
节点快照读写

文件功能:
    - 把节点记录序列化为格式化的 JSON 数组，原子地覆盖快照文件。
    - 读取快照文件原文。

公开接口:
    - write_snapshot(path, peers): 原子写入，失败时抛出 OSError
    - read_snapshot_text(path) -> str
"""

import json
import os
import tempfile
from typing import Sequence

from .schemas import NodeWatchPeer

SNAPSHOT_FILE_MODE = 0o644


def dump_snapshot(peers: Sequence[NodeWatchPeer]) -> str:
    return json.dumps(
        [peer.model_dump(mode="json", by_alias=True) for peer in peers],
        ensure_ascii=False,
        indent=2,
    )


def write_snapshot(path: str, peers: Sequence[NodeWatchPeer]) -> None:
    """
    写入快照：先写同目录下的临时文件，再用 os.replace 替换，读者不会看到写了一半的文件。

    :param path: 快照文件路径
    :param peers: 已排序的节点记录
    """
    content = dump_snapshot(peers)
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=".nodeWatchPeers.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        # mkstemp 创建的文件为 0600
        os.chmod(tmp_path, SNAPSHOT_FILE_MODE)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def read_snapshot_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()
