# -*- coding: utf-8 -*-
"""
测试 P2P 已知节点投影：扫描上限、角色过滤、角色标签
"""

import json
import os
import tempfile

import pytest

from service.peers import load_p2p_peers, project_p2p_peers, roles_to_labels


def peer(i, roles):
    return {"mainPublicKey": f"k{i}", "host": f"h{i}", "port": 7900, "name": f"n{i}", "roles": roles}


def test_roles_to_labels():
    assert roles_to_labels(1) == "Peer"
    assert roles_to_labels(2) == "Api"
    assert roles_to_labels(3) == "Peer, Api"
    assert roles_to_labels(7) == "Peer, Api, Voting"
    assert roles_to_labels(6) == "Api, Voting"


def test_limit_applies_to_scanned_items():
    # 前 10 项中有 2 项只有 Voting 角色，被跳过后不会用第 11、12 项补足
    peers = [peer(i, 4 if i in (2, 5) else 1) for i in range(12)]

    known = project_p2p_peers(peers)

    assert len(known) == 8
    assert [p.public_key for p in known] == [f"k{i}" for i in range(10) if i not in (2, 5)]


def test_projection_shape():
    known = project_p2p_peers([peer(1, 2)])

    assert known[0].model_dump(by_alias=True) == {
        "publicKey": "k1",
        "endpoint": {"host": "h1", "port": 7900},
        "metadata": {"name": "n1", "roles": "Api"},
    }


def test_load_rejects_non_array_snapshot():
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "nodeWatchPeers.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"not": "a list"}, f)

        with pytest.raises(ValueError):
            load_p2p_peers(path)
