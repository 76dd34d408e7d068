from flask import Blueprint, current_app, request
import logging
from config import INGEST_CONFIG, Messages, StatusCode
from models import IngestResult
from scheduler import run_ingestion_job
from utils import api_response, handle_api_error, int_arg

logger = logging.getLogger(__name__)

ingest_bp = Blueprint('ingest', __name__)

def _get_runner():
    runner = current_app.config.get('INGEST_RUNNER')
    if runner is None:
        raise ValueError("采集器未配置")
    return runner

@ingest_bp.route('/ingest/status')
@handle_api_error("QUERY_ERROR")
def get_ingest_status():
    """最近一次采集结果"""
    runner = _get_runner()
    last_result = runner.last_result.to_dict() if runner.last_result else None
    return api_response(
        success=True,
        message=Messages.QUERY_SUCCESS,
        data={
            'running': runner.is_running,
            'state': runner.state,
            'pending_retries': runner.pending_retries,
            'last_result': last_result,
        }
    )

@ingest_bp.route('/ingest/run', methods=['POST'])
@handle_api_error("INGEST_ERROR")
def trigger_ingest():
    """手动触发一次采集，已有采集运行时返回409"""
    runner = _get_runner()
    data = request.get_json(silent=True) or {}
    threshold_ms = int_arg(data, 'threshold_ms', INGEST_CONFIG['SLOW_QUERY_THRESHOLD_MS'], minimum=0)

    result = run_ingestion_job(runner, threshold_ms)
    if result.status == IngestResult.SKIPPED:
        return api_response(
            success=False,
            message=Messages.INGEST_BUSY,
            data=result.to_dict(),
            status_code=StatusCode.CONFLICT
        )
    return api_response(
        success=result.status == IngestResult.COMPLETED,
        message=f"采集{result.status}",
        data=result.to_dict()
    )
