"""
报表查询缓存
报表只读 query_log，采集写入新数据后整体清空
"""
import time
import threading
from functools import wraps
from typing import Dict, Any, Optional
import hashlib
import json

from config import API_CONFIG

class QueryCache:
    def __init__(self, default_timeout: int = 300):
        self.cache: Dict[str, Dict[str, Any]] = {}
        self.default_timeout = default_timeout
        self._lock = threading.Lock()

    def _generate_key(self, *args, **kwargs) -> str:
        """生成缓存键"""
        key_data = {
            'args': args,
            'kwargs': sorted(kwargs.items())
        }
        key_string = json.dumps(key_data, sort_keys=True, default=str)
        return hashlib.md5(key_string.encode()).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """获取缓存值"""
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                return None
            if time.time() < entry['expires']:
                return entry['value']
            del self.cache[key]
        return None

    def set(self, key: str, value: Any, timeout: Optional[int] = None) -> None:
        """设置缓存值"""
        timeout = timeout or self.default_timeout
        with self._lock:
            self.cache[key] = {
                'value': value,
                'expires': time.time() + timeout
            }

    def clear(self) -> int:
        with self._lock:
            count = len(self.cache)
            self.cache.clear()
        return count

    def cache_result(self, timeout: Optional[int] = None):
        """装饰器：缓存函数结果"""
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                cache_key = f"{func.__name__}:{self._generate_key(*args, **kwargs)}"

                cached_result = self.get(cache_key)
                if cached_result is not None:
                    return cached_result

                result = func(*args, **kwargs)
                self.set(cache_key, result, timeout)
                return result
            return wrapper
        return decorator

# 全局缓存实例
query_cache = QueryCache(default_timeout=API_CONFIG['CACHE_TIMEOUT'])

def cached_query(timeout: Optional[int] = None):
    """报表查询缓存装饰器"""
    return query_cache.cache_result(timeout)

def clear_cache() -> int:
    """清理所有缓存，返回清理的条数"""
    return query_cache.clear()
