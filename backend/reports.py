"""
query_log 报表查询
所有报表只读，结果按 API_CONFIG['CACHE_TIMEOUT'] 缓存，采集写入后清空
"""
import re
import logging
from datetime import date, datetime
from decimal import Decimal

from cache import cached_query
from db import get_db

logger = logging.getLogger(__name__)

REPORT_KEYWORDS = ('FROM', 'WHERE', 'JOIN', 'GROUP BY', 'HAVING', 'ORDER BY', 'LIMIT')

# 统计关键字前先去掉字符串和注释
_CLEANUP_PATTERNS = [
    re.compile(r"'[^']*'"),
    re.compile(r'"[^"]*"'),
    re.compile(r'/\*.*?\*/', re.DOTALL),
    re.compile(r'--[^\n\r]*'),
    re.compile(r'#[^\n\r]*'),
]

_KEYWORD_PATTERNS = {
    keyword: re.compile(r'\b' + keyword.replace(' ', r'\s+') + r'\b')
    for keyword in REPORT_KEYWORDS
}


def _serialize_value(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8', errors='replace')
    return value


def _serialize_rows(rows):
    return [{key: _serialize_value(value) for key, value in row.items()} for row in rows]


def _fetch_all(sql, params=()):
    db = get_db()
    cursor = None
    try:
        cursor = db.cursor(dictionary=True)
        cursor.execute(sql, params)
        return _serialize_rows(cursor.fetchall())
    finally:
        if cursor:
            cursor.close()
        db.close()


@cached_query()
def top_queries(limit=20):
    """执行次数最多的SQL指纹及平均耗时"""
    return _fetch_all("""
        SELECT
            query_hash,
            COUNT(*) AS execution_count,
            AVG(duration_ms) AS avg_duration_ms,
            ANY_VALUE(query_text) AS sample_query
        FROM query_log
        GROUP BY query_hash
        ORDER BY execution_count DESC
        LIMIT %s
    """, (limit,))


@cached_query()
def slow_unindexed_selects(min_duration_ms=100, limit=50):
    """未使用索引且耗时超过阈值的 SELECT"""
    return _fetch_all("""
        SELECT
            log_id,
            executed_at,
            duration_ms,
            rows_examined,
            query_text
        FROM query_log
        WHERE query_type = 'SELECT'
          AND used_an_index = FALSE
          AND duration_ms > %s
        ORDER BY duration_ms DESC, rows_examined DESC
        LIMIT %s
    """, (min_duration_ms, limit))


@cached_query()
def slow_queries(limit=20, offset=0):
    return _fetch_all("""
        SELECT log_id, executed_at, executed_by_user, duration_ms, rows_examined, query_text
        FROM vw_slow_queries
        ORDER BY executed_at DESC
        LIMIT %s OFFSET %s
    """, (limit, offset))


@cached_query()
def query_type_performance():
    return _fetch_all("""
        SELECT query_type, total_executions, avg_duration_ms, max_duration_ms, total_rows_examined
        FROM vw_query_type_performance
        ORDER BY total_executions DESC
    """)


def clean_statement(sql):
    for pattern in _CLEANUP_PATTERNS:
        sql = pattern.sub('', sql)
    return sql.upper()


def count_keywords(statements):
    """统计语句中各关键字出现的次数"""
    counts = dict.fromkeys(REPORT_KEYWORDS, 0)
    for sql in statements:
        if not sql:
            continue
        cleaned = clean_statement(_serialize_value(sql))
        for keyword, pattern in _KEYWORD_PATTERNS.items():
            counts[keyword] += len(pattern.findall(cleaned))
    return [{'keyword': keyword, 'count': counts[keyword]} for keyword in REPORT_KEYWORDS]


@cached_query()
def keyword_usage(batch_size=1000):
    """各SQL关键字在全部已采集语句中的出现次数"""
    db = get_db()
    cursor = None
    try:
        cursor = db.cursor()
        cursor.execute("SELECT query_text FROM query_log")

        def _statements():
            while True:
                rows = cursor.fetchmany(batch_size)
                if not rows:
                    break
                for (sql,) in rows:
                    yield sql

        usage = count_keywords(_statements())
    finally:
        if cursor:
            cursor.close()
        db.close()

    logger.debug(f"关键字统计完成: {usage}")
    return usage
