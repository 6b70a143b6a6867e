# -*- coding: utf-8 -*-
"""
节点客户端的工具函数
"""


def join_url(base_url: str, path: str) -> str:
    """拼接基础 URL 与接口路径"""
    base = base_url.rstrip("/")
    return f"{base}{path if path.startswith('/') else '/' + path}"


def to_hex_dot_string(num: int) -> str:
    """
    将打包的协议版本号转换为点分十六进制字符串。

    例如 0x01000300 -> "1.0.3.0"。每两位十六进制为一段，段首的一个 0 被去掉。
    """
    hex_str = format(num, "x").rjust(8, "0")
    parts = [hex_str[i:i + 2] for i in range(0, len(hex_str), 2)]
    return ".".join(part[1:] if part.startswith("0") else part for part in parts)
