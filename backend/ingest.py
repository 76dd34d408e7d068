#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
慢日志增量采集
每次运行：读取水位线 -> 流式读取新的慢日志 -> 逐条解析 -> 逐条写入 query_log

运行状态：IDLE -> READING -> TRANSFORMING -> WRITING -> IDLE
单条写入失败不会中断本批次，失败记录进入重试队列，在之后的运行中有限次重试
"""

import logging
import threading
import time
from contextlib import closing
from datetime import datetime

import mysql.connector
import pymysql

from config import INGEST_CONFIG
from log_parser import QueryLogParser
from models import IngestResult
from store import is_duplicate_error

logger = logging.getLogger(__name__)


class _PendingEntry:
    __slots__ = ('entry', 'attempts')

    def __init__(self, entry, attempts=1):
        self.entry = entry
        self.attempts = attempts


class IngestionRunner:
    def __init__(self, store, source, plan_collector=None,
                 run_timeout=None, max_write_retries=None):
        self.store = store
        self.source = source
        self.plan_collector = plan_collector
        self.run_timeout = INGEST_CONFIG['RUN_TIMEOUT'] if run_timeout is None else run_timeout
        self.max_write_retries = (INGEST_CONFIG['MAX_WRITE_RETRIES']
                                  if max_write_retries is None else max_write_retries)
        self.state = 'IDLE'
        self.last_result = None
        self._lock = threading.Lock()
        self._retry_queue = []

    @property
    def is_running(self):
        return self._lock.locked()

    @property
    def pending_retries(self):
        return len(self._retry_queue)

    def run(self, slow_query_threshold_ms):
        """执行一次采集，已有采集在运行时直接跳过"""
        if not self._lock.acquire(blocking=False):
            logger.warning("上一次采集仍在运行，跳过本次触发")
            result = IngestResult(status=IngestResult.SKIPPED, started_at=datetime.now())
            result.finished_at = result.started_at
            return result

        result = IngestResult(started_at=datetime.now())
        try:
            self._run(QueryLogParser(slow_query_threshold_ms), result)
        finally:
            self._set_state('IDLE')
            result.finished_at = datetime.now()
            self.last_result = result
            self._lock.release()

        logger.info(
            f"采集结束[{result.status}]: 读取 {result.read} 条, 写入 {result.written} 条, "
            f"重复 {result.duplicates} 条, 失败 {result.failed} 条, 重试 {result.retried} 条"
        )
        return result

    def _run(self, parser, result):
        deadline = time.monotonic() + self.run_timeout if self.run_timeout else None

        self._set_state('READING')
        try:
            cutoff = self.store.get_watermark()
        except mysql.connector.Error as e:
            logger.error(f"读取水位线失败，本次采集中止: {e}")
            result.status = IngestResult.ABORTED
            result.add_error(f"watermark: {e}")
            return
        result.cutoff = cutoff
        logger.debug(f"水位线: {cutoff}")

        self._retry_pending(parser, cutoff, result)

        # 超时后仍要处理完同一 captured_at 的记录：下次运行只读取 > 水位线 的记录
        stop_at = None
        try:
            with closing(self.source.iter_entries(cutoff)) as entries:
                for entry in entries:
                    if stop_at is not None and entry.captured_at != stop_at:
                        break
                    result.read += 1
                    self._process(parser, entry, result)
                    if stop_at is None and deadline is not None and time.monotonic() > deadline:
                        logger.warning(f"采集超过 {self.run_timeout} 秒，处理完 {entry.captured_at} 的记录后停止")
                        result.status = IngestResult.TIMEOUT
                        stop_at = entry.captured_at
        except pymysql.MySQLError as e:
            logger.error(f"读取慢日志失败，本次采集中止: {e}")
            result.status = IngestResult.ABORTED
            result.add_error(f"source: {e}")

    def _retry_pending(self, parser, cutoff, result):
        """重试之前写入失败、且已落在水位线之内的记录"""
        if not self._retry_queue:
            return

        pending, self._retry_queue = self._retry_queue, []
        for item in pending:
            # 水位线之后的记录会被正常读取到，不需要单独重试
            if item.entry.captured_at > cutoff:
                continue
            result.retried += 1
            self._process(parser, item.entry, result, attempts=item.attempts)

    def _process(self, parser, entry, result, attempts=0):
        """解析并写入一条记录，写入失败时放入重试队列"""
        self._set_state('TRANSFORMING')
        record = parser.parse_entry(entry)
        if self.plan_collector is not None:
            record.execution_plan, record.used_index = self.plan_collector.collect(
                record.operation_kind, record.statement_text, entry.db_name)

        self._set_state('WRITING')
        try:
            self.store.insert_record(record)
        except mysql.connector.Error as e:
            if is_duplicate_error(e):
                result.duplicates += 1
                logger.debug(f"记录已存在，跳过: {entry.captured_at}")
                return
            result.failed += 1
            result.add_error(f"{entry.captured_at}: {e}")
            logger.error(f"写入失败 executed_at={entry.captured_at}: {e}")
            self._queue_retry(entry, attempts + 1)
            return

        result.written += 1

    def _queue_retry(self, entry, attempts):
        if attempts > self.max_write_retries:
            logger.error(f"记录重试 {self.max_write_retries} 次仍失败，放弃: {entry.captured_at}")
            return
        self._retry_queue.append(_PendingEntry(entry, attempts))

    def _set_state(self, state):
        if state != self.state:
            logger.debug(f"采集状态: {self.state} -> {state}")
            self.state = state
