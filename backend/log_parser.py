#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
慢日志记录解析
把 mysql.slow_log 中的一行原始记录转换为 query_log 的结构化记录：
用户/来源拆分、耗时换算、语句分类、表名提取（尽力而为）和SQL指纹
"""

import re
import hashlib
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from models import OperationKind, StructuredRecord

ACTOR_SEPARATOR = ' @ '
MS_QUANTUM = Decimal('0.001')

# 表名提取规则：语句类型 -> (定位关键字, 截断模式)
# 只取关键字第一次出现后的第一个词，JOIN/子查询/别名均不处理
TARGET_RULES = {
    OperationKind.SELECT: ('FROM', r'\s'),
    OperationKind.DELETE: ('FROM', r'\s'),
    OperationKind.INSERT: ('INTO', r'\s'),
    OperationKind.UPDATE: ('UPDATE', r'\s'),
    OperationKind.CREATE: ('TABLE', r'\('),  # 去掉字段定义
    OperationKind.ALTER: ('TABLE', r'\s'),
    OperationKind.DROP: ('TABLE', r'\s'),
}

# 关键字后允许任意空白（换行、制表符），多行语句同样能定位
_ANCHOR_PATTERNS = {
    keyword: re.compile(r'\b' + keyword + r'\s')
    for keyword in set(anchor for anchor, _ in TARGET_RULES.values())
}

# 指纹规范化：参数化处理
_FINGERPRINT_PATTERNS = [
    (re.compile(r'/\*.*?\*/', re.DOTALL), ' '),                 # 块注释
    (re.compile(r'(?:--|#)[^\n\r]*'), ' '),                      # 行注释
    (re.compile(r"'(?:\\.|''|[^'\\])*'"), '?'),                  # 单引号字符串
    (re.compile(r'"(?:\\.|""|[^"\\])*"'), '?'),                  # 双引号字符串
    (re.compile(r'\b\d+(?:\.\d+)?\b'), '?'),                     # 数字
    (re.compile(r'\bIN\s*\(\s*\?(?:\s*,\s*\?)*\s*\)', re.IGNORECASE), 'IN (?)'),
    (re.compile(r'\bVALUES\s*\([^)]*\)(?:\s*,\s*\([^)]*\))*', re.IGNORECASE), 'VALUES (?)'),
    (re.compile(r'\bLIMIT\s+\?(?:\s*(?:,|OFFSET)\s*\?)?', re.IGNORECASE), 'LIMIT ?'),
    (re.compile(r'\s+'), ' '),
]


def normalize_duration(elapsed):
    """耗时换算为毫秒（保留3位小数）

    elapsed 为 timedelta（TIME(6) 列）或以秒为单位的数值
    """
    if isinstance(elapsed, timedelta):
        micros = (elapsed.days * 86400 + elapsed.seconds) * 1000000 + elapsed.microseconds
        millis = Decimal(micros) / 1000
    else:
        millis = Decimal(str(elapsed)) * 1000
    if millis < 0:
        millis = Decimal(0)
    return millis.quantize(MS_QUANTUM, rounding=ROUND_HALF_UP)


def split_actor(user_host):
    """拆分 'user @ host' 字符串，缺少分隔符时来源为空"""
    text = user_host or ''
    if ACTOR_SEPARATOR not in text:
        return text.strip(), ''
    actor = text.split(ACTOR_SEPARATOR, 1)[0]
    origin = text.rsplit(ACTOR_SEPARATOR, 1)[1]
    return actor.strip(), origin.strip()


def classify_query(sql):
    """按语句开头的关键字分类

    注意：开头有空白的语句会被归为 OTHER
    """
    upper = (sql or '').upper()
    for keyword in OperationKind.KEYWORDS:
        if upper.startswith(keyword):
            return keyword
    return OperationKind.OTHER


def extract_target(operation_kind, sql):
    """提取语句的主表名（大写），无法识别时返回 None"""
    rule = TARGET_RULES.get(operation_kind)
    if rule is None or not sql:
        return None

    anchor, stop = rule
    upper = sql.upper()
    match = _ANCHOR_PATTERNS[anchor].search(upper)
    if not match:
        return None

    remainder = upper[match.end():].lstrip()
    token = re.split(stop, remainder, maxsplit=1)[0]
    return _clean_identifier(token)


def _clean_identifier(token):
    """去掉引号和首尾空白"""
    name = token.replace('`', '').replace('"', '')
    name = name.strip().strip(';,').strip()
    return name or None


def normalize_sql(sql):
    """规范化SQL语句，生成指纹用"""
    if not sql or not sql.strip():
        return ''
    normalized = sql
    for pattern, replacement in _FINGERPRINT_PATTERNS:
        normalized = pattern.sub(replacement, normalized)
    return normalized.strip().rstrip(';').strip().upper()


def generate_checksum(normalized_sql):
    """生成SQL指纹（64位十六进制）"""
    return hashlib.sha256(normalized_sql.encode('utf-8')).hexdigest()


class QueryLogParser:
    """把原始慢日志记录转换为结构化记录"""

    def __init__(self, slow_query_threshold_ms=500):
        self.slow_query_threshold_ms = Decimal(str(slow_query_threshold_ms))

    def is_slow(self, duration_ms):
        # 阈值包含边界：等于阈值即为慢查询
        return duration_ms >= self.slow_query_threshold_ms

    def parse_entry(self, entry):
        executed_by, client_origin = split_actor(entry.actor_host_string)
        duration_ms = normalize_duration(entry.elapsed)
        operation_kind = classify_query(entry.statement_text)

        return StructuredRecord(
            executed_at=entry.captured_at,
            executed_by=executed_by,
            client_origin=client_origin,
            operation_kind=operation_kind,
            target_object=extract_target(operation_kind, entry.statement_text),
            statement_text=entry.statement_text,
            content_fingerprint=generate_checksum(normalize_sql(entry.statement_text)),
            duration_ms=duration_ms,
            rows_examined=max(int(entry.rows_examined or 0), 0),
            rows_sent=max(int(entry.rows_sent or 0), 0),
            is_slow=self.is_slow(duration_ms),
        )
