#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
慢日志读取
从被监控实例的 mysql.slow_log 表中按时间顺序流式读取新记录
"""

import logging

import pymysql
import pymysql.cursors

from config import SOURCE_DB_CONFIG
from models import RawLogEntry

logger = logging.getLogger(__name__)

SLOW_LOG_COLUMNS = "start_time, user_host, query_time, sql_text, rows_sent, rows_examined, db"

SLOW_LOG_QUERY = f"""
    SELECT {SLOW_LOG_COLUMNS}
    FROM mysql.slow_log
    WHERE start_time > %s
    ORDER BY start_time ASC
"""

# LIMIT 截断时补读最后一个时间点的全部记录
SAME_TIME_QUERY = f"""
    SELECT {SLOW_LOG_COLUMNS}
    FROM mysql.slow_log
    WHERE start_time = %s
"""


def _to_text(value):
    # sql_text 是 MEDIUMBLOB，PyMySQL 返回 bytes
    if value is None:
        return ''
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8', errors='replace')
    return str(value)


class SlowLogSource:
    def __init__(self, db_config=None, connect=pymysql.connect, batch_limit=0):
        self.db_config = db_config if db_config is not None else SOURCE_DB_CONFIG
        self._connect = connect
        self.batch_limit = batch_limit

    def iter_entries(self, cutoff):
        """返回 start_time > cutoff 的记录，按时间升序，惰性读取

        每次调用都会新建连接，读完（或生成器关闭）后释放。
        设置了 batch_limit 时，同一 start_time 的记录不会被 LIMIT 拆开：
        最后一个时间点的剩余记录会补读出来，否则下次按 > 水位线 读取时会漏掉
        """
        sql = SLOW_LOG_QUERY
        params = [cutoff]
        if self.batch_limit:
            sql += " LIMIT %s"
            params.append(self.batch_limit)

        logger.debug(f"读取慢日志: start_time > {cutoff}, limit={self.batch_limit or '无'}")
        conn = self._connect(**self.db_config)
        try:
            count = 0
            tail_time, tail_rows = None, []
            for row in self._stream(conn, sql, params):
                count += 1
                if row[0] != tail_time:
                    tail_time, tail_rows = row[0], []
                tail_rows.append(row)
                yield self._to_entry(row)

            if self.batch_limit and count >= self.batch_limit:
                logger.debug(f"达到读取上限 {self.batch_limit}，补读 start_time = {tail_time} 的记录")
                for row in self._stream(conn, SAME_TIME_QUERY, [tail_time]):
                    # 已经读过的记录跳过
                    if row in tail_rows:
                        tail_rows.remove(row)
                        continue
                    yield self._to_entry(row)
        finally:
            # 提前结束时不关闭游标：SSCursor.close() 会先读完剩余的全部结果
            conn.close()

    @staticmethod
    def _stream(conn, sql, params):
        # 服务端游标，避免一次性把慢日志全部拉到内存
        cursor = conn.cursor(pymysql.cursors.SSCursor)
        cursor.execute(sql, params)
        for row in cursor:
            yield row
        cursor.close()

    @staticmethod
    def _to_entry(row):
        start_time, user_host, query_time, sql_text, rows_sent, rows_examined, db = row
        return RawLogEntry(
            captured_at=start_time,
            actor_host_string=_to_text(user_host),
            elapsed=query_time,
            statement_text=_to_text(sql_text),
            rows_sent=rows_sent or 0,
            rows_examined=rows_examined or 0,
            db_name=_to_text(db) or None,
        )
