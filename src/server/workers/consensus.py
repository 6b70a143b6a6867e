# -*- coding: utf-8 -*-

"""
共识高度计算

文件功能:
    - 计算一组区块高度的中位数，作为全网共识高度。
    - 按共识高度过滤落后节点，并按响应时间排序。

公开接口:
    - calc_median(nums): 取平均的中位数（偶数个时取中间两数的平均），爬虫使用
    - median_by_index(nums): 排序后取下标 len // 2 的值，不取平均，高度查询使用
    - filter_stale_peers(peers, median, threshold): 过滤落后节点
    - sort_by_response_time(peers): 按响应时间升序排序

两个中位数函数的差异是有意保留的：偶数个高度时二者结果不同。
"""

from typing import Optional, Sequence, Union

from .schemas import NodeWatchPeer

Number = Union[int, float]


def calc_median(nums: Sequence[int]) -> Optional[Number]:
    """
    计算中位数。

    :param nums: 已解析为整数的高度
    :return: 中位数；没有任何高度时返回 None（与中位数 0 区分）
    """
    if not nums:
        return None
    ordered = sorted(nums)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def median_by_index(nums: Sequence[int]) -> Optional[int]:
    """排序后取 len // 2 位置的值（偶数个时取较大的中间值）"""
    if not nums:
        return None
    return sorted(nums)[len(nums) // 2]


def filter_stale_peers(
    peers: Sequence[NodeWatchPeer], median: Optional[Number], threshold: int
) -> list[NodeWatchPeer]:
    """
    保留高度严格大于 (median - threshold) 的节点。

    median 为 None（无法确定共识）时不做过滤，全部保留。
    """
    if median is None:
        return list(peers)
    cutoff = median - threshold
    return [peer for peer in peers if peer.height is not None and peer.height > cutoff]


def sort_by_response_time(peers: Sequence[NodeWatchPeer]) -> list[NodeWatchPeer]:
    # 未测得响应时间按 0 处理，排在最前
    return sorted(peers, key=lambda peer: peer.response_time or 0)
