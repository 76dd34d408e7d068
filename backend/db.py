import mysql.connector.pooling
from config import DB_CONFIG, POOL_CONFIG

# 连接池在首次使用时创建，导入本模块不会连接数据库
connection_pool = None

def get_db():
    global connection_pool
    if connection_pool is None:
        connection_pool = mysql.connector.pooling.MySQLConnectionPool(
            **DB_CONFIG,
            **POOL_CONFIG
        )
    return connection_pool.get_connection()
