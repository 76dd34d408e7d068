from flask import Blueprint, request
import logging
import reports
from utils import api_response, handle_api_error, int_arg
from config import API_CONFIG, Messages

logger = logging.getLogger(__name__)

reports_bp = Blueprint('reports', __name__)

@reports_bp.route('/reports/top-queries')
@handle_api_error("QUERY_ERROR")
def get_top_queries():
    """执行次数最多的SQL"""
    limit = int_arg(request.args, 'limit', 20, maximum=API_CONFIG['MAX_PAGE_SIZE'])
    data = reports.top_queries(limit)
    logger.info(f"获取高频SQL，共 {len(data)} 条")
    return api_response(success=True, message=Messages.QUERY_SUCCESS, data=data)

@reports_bp.route('/reports/slow-unindexed')
@handle_api_error("QUERY_ERROR")
def get_slow_unindexed():
    """未使用索引的慢 SELECT"""
    min_duration_ms = int_arg(request.args, 'min_duration_ms', 100, minimum=0)
    limit = int_arg(request.args, 'limit', 50, maximum=API_CONFIG['MAX_PAGE_SIZE'])
    data = reports.slow_unindexed_selects(min_duration_ms, limit)
    return api_response(success=True, message=Messages.QUERY_SUCCESS, data=data)

@reports_bp.route('/reports/keywords')
@handle_api_error("QUERY_ERROR")
def get_keyword_usage():
    return api_response(success=True, message=Messages.QUERY_SUCCESS, data=reports.keyword_usage())

@reports_bp.route('/reports/slow-queries')
@handle_api_error("QUERY_ERROR")
def get_slow_queries():
    """慢查询列表（vw_slow_queries）"""
    per_page = int_arg(request.args, 'per_page', API_CONFIG['DEFAULT_PAGE_SIZE'],
                       maximum=API_CONFIG['MAX_PAGE_SIZE'])
    page = int_arg(request.args, 'page', 1)
    data = reports.slow_queries(per_page, (page - 1) * per_page)
    return api_response(
        success=True,
        message=Messages.QUERY_SUCCESS,
        data={'data': data, 'page': page, 'per_page': per_page}
    )

@reports_bp.route('/reports/query-types')
@handle_api_error("QUERY_ERROR")
def get_query_type_performance():
    """按语句类型汇总（vw_query_type_performance）"""
    return api_response(success=True, message=Messages.QUERY_SUCCESS, data=reports.query_type_performance())
