#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
慢日志定时采集
默认每5分钟执行一次，阈值500ms；同一时间只允许一个采集任务运行，重叠的触发直接跳过

使用方法:
    python scheduler.py                  # 常驻运行
    python scheduler.py --once           # 只执行一次
    python scheduler.py --init-tables    # 先初始化表和视图
"""

import argparse
import json
import logging
import sys
from datetime import datetime

from apscheduler.schedulers.blocking import BlockingScheduler

from cache import clear_cache
from config import INGEST_CONFIG, LOG_LEVEL
from explain import ExecutionPlanCollector
from ingest import IngestionRunner
from log_source import SlowLogSource
from models import IngestResult
from store import QueryLogStore

logger = logging.getLogger(__name__)

JOB_ID = 'process_query_logs'


def build_runner(capture_plan=None):
    """按配置组装采集器"""
    if capture_plan is None:
        capture_plan = INGEST_CONFIG['CAPTURE_EXECUTION_PLAN']
    return IngestionRunner(
        store=QueryLogStore(),
        source=SlowLogSource(batch_limit=INGEST_CONFIG['BATCH_LIMIT']),
        plan_collector=ExecutionPlanCollector() if capture_plan else None,
    )


def run_ingestion_job(runner, slow_query_threshold_ms):
    """调度任务入口：执行一次采集，写入新数据后清空报表缓存"""
    result = runner.run(slow_query_threshold_ms)
    if result.written:
        cleared = clear_cache()
        logger.debug(f"已清理 {cleared} 条报表缓存")
    return result


def schedule_ingestion(scheduler, runner, interval_minutes=None, slow_query_threshold_ms=None):
    """注册定时采集任务，返回 Job"""
    if interval_minutes is None:
        interval_minutes = INGEST_CONFIG['INTERVAL_MINUTES']
    if slow_query_threshold_ms is None:
        slow_query_threshold_ms = INGEST_CONFIG['SLOW_QUERY_THRESHOLD_MS']

    logger.info(f"注册采集任务: 每 {interval_minutes} 分钟, 慢查询阈值 {slow_query_threshold_ms}ms")
    return scheduler.add_job(
        run_ingestion_job,
        'interval',
        minutes=interval_minutes,
        id=JOB_ID,
        kwargs={'runner': runner, 'slow_query_threshold_ms': slow_query_threshold_ms},
        max_instances=1,   # 上一次未结束时跳过本次触发
        coalesce=True,
        replace_existing=True,
        next_run_time=datetime.now(),
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='MySQL慢日志增量采集',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--once', action='store_true', help='只执行一次采集后退出')
    parser.add_argument('--threshold-ms', type=int,
                        default=INGEST_CONFIG['SLOW_QUERY_THRESHOLD_MS'],
                        help='慢查询阈值（毫秒），默认 %(default)s')
    parser.add_argument('--interval-minutes', type=int,
                        default=INGEST_CONFIG['INTERVAL_MINUTES'],
                        help='采集间隔（分钟），默认 %(default)s')
    parser.add_argument('--init-tables', action='store_true', help='启动前初始化 query_log 表和视图')
    parser.add_argument('--capture-plan', action='store_true',
                        default=INGEST_CONFIG['CAPTURE_EXECUTION_PLAN'],
                        help='采集执行计划（EXPLAIN FORMAT=JSON）')
    args = parser.parse_args(argv)
    if args.threshold_ms < 0:
        parser.error('--threshold-ms 不能为负数')
    if args.interval_minutes < 1:
        parser.error('--interval-minutes 至少为1')
    return args


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if args.init_tables:
        from init_tables import init_tables
        init_tables()

    runner = build_runner(capture_plan=args.capture_plan)
    try:
        if args.once:
            result = run_ingestion_job(runner, args.threshold_ms)
            print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
            return 0 if result.status == IngestResult.COMPLETED else 1

        scheduler = BlockingScheduler()
        schedule_ingestion(scheduler, runner, args.interval_minutes, args.threshold_ms)
        try:
            scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("采集调度已停止")
        return 0
    finally:
        if runner.plan_collector is not None:
            runner.plan_collector.close()


if __name__ == '__main__':
    sys.exit(main())
