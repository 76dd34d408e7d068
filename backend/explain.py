"""
执行计划采集（可选）
在被监控实例上对语句执行 EXPLAIN FORMAT=JSON，并判断是否使用了索引
"""
import json
import logging

import pymysql

from config import SOURCE_DB_CONFIG
from models import OperationKind

logger = logging.getLogger(__name__)

EXPLAINABLE_KINDS = (
    OperationKind.SELECT,
    OperationKind.INSERT,
    OperationKind.UPDATE,
    OperationKind.DELETE,
)


def plan_uses_index(plan):
    """计划中任一表访问指定了 key 即视为使用了索引"""
    if isinstance(plan, dict):
        if plan.get('table_name') and plan.get('key'):
            return True
        return any(plan_uses_index(value) for value in plan.values())
    if isinstance(plan, list):
        return any(plan_uses_index(item) for item in plan)
    return False


class ExecutionPlanCollector:
    def __init__(self, db_config=None, connect=pymysql.connect):
        self.db_config = db_config if db_config is not None else SOURCE_DB_CONFIG
        self._connect = connect
        self._conn = None

    def collect(self, operation_kind, sql, db_name=None):
        """返回 (execution_plan, used_index)，无法采集时为 (None, False)"""
        if operation_kind not in EXPLAINABLE_KINDS or not sql:
            return None, False

        try:
            conn = self._get_connection()
            if db_name:
                conn.select_db(db_name)
            with conn.cursor() as cursor:
                cursor.execute("EXPLAIN FORMAT=JSON " + sql)
                row = cursor.fetchone()
        except pymysql.MySQLError as e:
            logger.warning(f"执行计划采集失败: {e}")
            self._reset()
            return None, False

        if not row or not row[0]:
            return None, False
        try:
            plan = json.loads(row[0])
        except ValueError:
            logger.warning("执行计划不是有效的JSON")
            return None, False
        return plan, plan_uses_index(plan)

    def _get_connection(self):
        if self._conn is None:
            self._conn = self._connect(**self.db_config)
        return self._conn

    def _reset(self):
        if self._conn is not None:
            try:
                self._conn.close()
            except pymysql.MySQLError as e:
                logger.debug(f"关闭执行计划连接失败: {e}")
            self._conn = None

    def close(self):
        self._reset()
