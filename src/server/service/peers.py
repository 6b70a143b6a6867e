# -*- coding: utf-8 -*-
"""
节点快照的对外读取

文件功能:
    - 把快照投影为 P2P 已知节点列表。

公开接口:
    - project_p2p_peers(peers, limit) -> list[KnownPeer]
    - load_p2p_peers(path) -> list[KnownPeer]
    - roles_to_labels(roles) -> str
"""

import json
from typing import Any, Sequence

from workers.schemas import KnownPeer, KnownPeerEndpoint, KnownPeerMetadata
from workers.snapshot import read_snapshot_text

P2P_SCAN_LIMIT = 10

ROLE_LABELS = ((1, "Peer"), (2, "Api"), (4, "Voting"))


def roles_to_labels(roles: int) -> str:
    """把角色位掩码转换为 "Peer, Api, Voting" 形式的标签"""
    return ", ".join(label for bit, label in ROLE_LABELS if roles & bit)


def project_p2p_peers(peers: Sequence[dict[str, Any]], limit: int = P2P_SCAN_LIMIT) -> list[KnownPeer]:
    """
    只扫描前 limit 项；其中角色含 Peer 或 Api 位的项被输出，其余跳过。
    上限作用于扫描项数而非输出项数。
    """
    known: list[KnownPeer] = []
    for peer in peers[:limit]:
        roles = int(peer.get("roles") or 0)
        if not roles & 3:
            continue
        known.append(KnownPeer(
            public_key=peer.get("mainPublicKey"),
            endpoint=KnownPeerEndpoint(host=peer.get("host"), port=peer.get("port")),
            metadata=KnownPeerMetadata(name=peer.get("name"), roles=roles_to_labels(roles)),
        ))
    return known


def load_p2p_peers(path: str) -> list[KnownPeer]:
    """读取快照并投影；文件缺失或内容损坏时抛出 OSError / ValueError"""
    data = json.loads(read_snapshot_text(path))
    if not isinstance(data, list):
        raise ValueError("快照内容不是 JSON 数组")
    return project_p2p_peers(data)
