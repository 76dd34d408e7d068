import os
from dotenv import load_dotenv

# 加载.env文件（如果存在）
load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, default).lower() == 'true'


# 分析库配置（query_log 所在库）
DB_CONFIG = {
    "host": os.getenv('DB_HOST', 'localhost'),
    "port": int(os.getenv('DB_PORT', '3306')),
    "user": os.getenv('DB_USER', 'root'),
    "password": os.getenv('DB_PASSWORD', ''),
    "database": os.getenv('DB_NAME', 'query_logger'),
}

# 连接池配置
POOL_CONFIG = {
    "pool_name": "query_log_pool",
    "pool_size": int(os.getenv('DB_POOL_SIZE', '5')),
    "pool_reset_session": True,
    "autocommit": True,  # 逐条写入即提交，中断后已写入的记录保留
}

# 被监控的MySQL实例（mysql.slow_log 所在实例，需 log_output = 'TABLE'）
SOURCE_DB_CONFIG = {
    'host': os.getenv('SOURCE_DB_HOST', os.getenv('DB_HOST', 'localhost')),
    'port': int(os.getenv('SOURCE_DB_PORT', os.getenv('DB_PORT', '3306'))),
    'user': os.getenv('SOURCE_DB_USER', os.getenv('DB_USER', 'root')),
    'password': os.getenv('SOURCE_DB_PASSWORD', os.getenv('DB_PASSWORD', '')),
    'charset': 'utf8mb4',
    'autocommit': True,
    'connect_timeout': int(os.getenv('SOURCE_CONNECT_TIMEOUT', '10')),
    'read_timeout': int(os.getenv('SOURCE_READ_TIMEOUT', '60')),
}

# 采集配置
INGEST_CONFIG = {
    "SLOW_QUERY_THRESHOLD_MS": int(os.getenv('SLOW_QUERY_THRESHOLD_MS', '500')),
    "INTERVAL_MINUTES": int(os.getenv('INGEST_INTERVAL_MINUTES', '5')),
    "RUN_TIMEOUT": int(os.getenv('INGEST_RUN_TIMEOUT', '240')),  # 秒，需小于调度间隔
    "BATCH_LIMIT": int(os.getenv('INGEST_BATCH_LIMIT', '10000')),  # 0 表示不限制
    "MAX_WRITE_RETRIES": int(os.getenv('INGEST_MAX_WRITE_RETRIES', '3')),
    "CAPTURE_EXECUTION_PLAN": _env_bool('CAPTURE_EXECUTION_PLAN', 'False'),
    "ENABLE_SCHEDULER": _env_bool('ENABLE_SCHEDULER', 'False'),
}

# 应用配置
APP_CONFIG = {
    "host": os.getenv('APP_HOST', '0.0.0.0'),
    "port": int(os.getenv('APP_PORT', '5172')),
    "debug": _env_bool('FLASK_DEBUG', 'False'),
}

# API配置
API_CONFIG = {
    "DEFAULT_PAGE_SIZE": int(os.getenv('DEFAULT_PAGE_SIZE', '20')),
    "MAX_PAGE_SIZE": int(os.getenv('MAX_PAGE_SIZE', '100')),
    "CACHE_TIMEOUT": int(os.getenv('CACHE_TIMEOUT', '300')),  # 缓存5分钟
}

# 安全配置
SECURITY_CONFIG = {
    "CORS_ORIGINS": os.getenv('CORS_ORIGINS', '*').split(','),
    "MAX_CONTENT_LENGTH": int(os.getenv('MAX_CONTENT_LENGTH', '16777216'))  # 16MB
}

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

# 响应状态码
class StatusCode:
    SUCCESS = 200
    BAD_REQUEST = 400
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_ERROR = 500

# 响应消息
class Messages:
    QUERY_SUCCESS = "查询成功"
    QUERY_ERROR = "查询失败"
    INGEST_ERROR = "采集失败"
    INGEST_BUSY = "已有采集任务在运行"
    INVALID_PARAMS = "无效的参数"
    NOT_FOUND = "未找到相关数据"
