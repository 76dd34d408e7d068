import logging

import mysql.connector
from config import DB_CONFIG

logger = logging.getLogger(__name__)

QUERY_LOG_DDL = """
    CREATE TABLE IF NOT EXISTS query_log (
        log_id BIGINT UNSIGNED NOT NULL AUTO_INCREMENT,
        executed_at TIMESTAMP(6) NOT NULL,
        executed_by_user VARCHAR(128) NOT NULL,
        client_host VARCHAR(255) NOT NULL,
        query_type ENUM('SELECT', 'INSERT', 'UPDATE', 'DELETE', 'CREATE', 'ALTER', 'DROP', 'OTHER') NOT NULL,
        table_name VARCHAR(255) DEFAULT NULL,
        query_text MEDIUMTEXT NOT NULL,
        query_hash CHAR(64) NOT NULL,
        duration_ms DECIMAL(12, 3) NOT NULL,
        rows_examined INT UNSIGNED NOT NULL,
        rows_sent INT UNSIGNED NOT NULL,
        used_an_index BOOLEAN NOT NULL DEFAULT FALSE,
        execution_plan JSON DEFAULT NULL,
        error_message TEXT DEFAULT NULL,
        is_slow_query BOOLEAN NOT NULL DEFAULT FALSE,
        PRIMARY KEY (log_id),
        UNIQUE KEY uk_entry_identity (executed_at, query_hash, executed_by_user, client_host),
        INDEX idx_executed_at (executed_at),
        INDEX idx_query_type (query_type),
        INDEX idx_table_name (table_name),
        INDEX idx_query_hash (query_hash),
        INDEX idx_hash_duration (query_hash, duration_ms),
        INDEX idx_filter_sort (used_an_index, query_type, duration_ms),
        INDEX idx_executed_by_user (executed_by_user),
        INDEX idx_duration_ms (duration_ms)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COMMENT='Logs executed SQL queries and their performance metadata.'
"""

SLOW_QUERIES_VIEW = """
    CREATE OR REPLACE VIEW vw_slow_queries AS
    SELECT
        log_id,
        executed_at,
        executed_by_user,
        duration_ms,
        rows_examined,
        query_text
    FROM query_log
    WHERE is_slow_query = TRUE
"""

QUERY_TYPE_PERFORMANCE_VIEW = """
    CREATE OR REPLACE VIEW vw_query_type_performance AS
    SELECT
        query_type,
        COUNT(*) AS total_executions,
        AVG(duration_ms) AS avg_duration_ms,
        MAX(duration_ms) AS max_duration_ms,
        SUM(rows_examined) AS total_rows_examined
    FROM query_log
    GROUP BY query_type
"""

SCHEMA_STATEMENTS = (QUERY_LOG_DDL, SLOW_QUERIES_VIEW, QUERY_TYPE_PERFORMANCE_VIEW)


def init_tables(connect=mysql.connector.connect):
    """初始化 query_log 表和汇总视图"""
    connection = connect(**DB_CONFIG)
    cursor = connection.cursor()

    try:
        for statement in SCHEMA_STATEMENTS:
            cursor.execute(statement)
        connection.commit()
        logger.info("数据表初始化成功！")

    except mysql.connector.Error as e:
        connection.rollback()
        logger.error(f"初始化失败: {type(e).__name__}: {e}", exc_info=True)
        raise

    finally:
        cursor.close()
        connection.close()

if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(message)s')
    init_tables()
