"""
数据结构定义
RawLogEntry 来自 mysql.slow_log，StructuredRecord 对应 query_log 表的一行
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional


class OperationKind:
    SELECT = 'SELECT'
    INSERT = 'INSERT'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
    CREATE = 'CREATE'
    ALTER = 'ALTER'
    DROP = 'DROP'
    OTHER = 'OTHER'

    # 前缀匹配顺序，先匹配者优先
    KEYWORDS = (SELECT, INSERT, UPDATE, DELETE, CREATE, ALTER, DROP)
    ALL = KEYWORDS + (OTHER,)


@dataclass(frozen=True)
class RawLogEntry:
    """慢日志表中的一条原始记录"""
    captured_at: datetime
    actor_host_string: str
    elapsed: Any  # TIME(6) 列，PyMySQL 解码为 timedelta
    statement_text: str
    rows_sent: int = 0
    rows_examined: int = 0
    db_name: Optional[str] = None


@dataclass
class StructuredRecord:
    executed_at: datetime
    executed_by: str
    client_origin: str
    operation_kind: str
    target_object: Optional[str]
    statement_text: str
    content_fingerprint: str
    duration_ms: Decimal
    rows_examined: int
    rows_sent: int
    used_index: bool = False
    execution_plan: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    is_slow: bool = False
    id: Optional[int] = None


@dataclass
class IngestResult:
    """单次采集运行的结果统计"""
    status: str = 'completed'
    cutoff: Optional[datetime] = None
    read: int = 0
    written: int = 0
    duplicates: int = 0
    failed: int = 0
    retried: int = 0
    errors: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    COMPLETED = 'completed'
    SKIPPED = 'skipped'
    ABORTED = 'aborted'
    TIMEOUT = 'timeout'

    MAX_ERRORS = 20

    def add_error(self, message: str) -> None:
        if len(self.errors) < self.MAX_ERRORS:
            self.errors.append(message)

    @property
    def elapsed_seconds(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        def _iso(value):
            return value.isoformat() if value else None

        return {
            'status': self.status,
            'cutoff': _iso(self.cutoff),
            'read': self.read,
            'written': self.written,
            'duplicates': self.duplicates,
            'failed': self.failed,
            'retried': self.retried,
            'errors': list(self.errors),
            'started_at': _iso(self.started_at),
            'finished_at': _iso(self.finished_at),
            'elapsed_seconds': self.elapsed_seconds,
        }
