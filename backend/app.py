from flask import Flask, jsonify
from flask_cors import CORS
import atexit
import logging
from datetime import datetime
from config import APP_CONFIG, INGEST_CONFIG, SECURITY_CONFIG, LOG_LEVEL, StatusCode
from utils import api_response
from routes.reports import reports_bp
from routes.ingest import ingest_bp
from scheduler import build_runner, schedule_ingestion

logger = logging.getLogger(__name__)

def create_app(runner=None):
    app = Flask(__name__)

    cors_origins = SECURITY_CONFIG.get('CORS_ORIGINS', ['*'])
    if cors_origins == ['*']:
        CORS(app, expose_headers=['Content-Type'], allow_headers=['Content-Type'])
    else:
        CORS(app, origins=cors_origins, expose_headers=['Content-Type'], allow_headers=['Content-Type'])

    app.config['MAX_CONTENT_LENGTH'] = SECURITY_CONFIG.get('MAX_CONTENT_LENGTH', 16 * 1024 * 1024)
    # 采集器不会在创建时连接数据库
    app.config['INGEST_RUNNER'] = runner if runner is not None else build_runner()

    # 注册蓝图
    app.register_blueprint(reports_bp, url_prefix='/api')
    app.register_blueprint(ingest_bp, url_prefix='/api')

    @app.route('/api/health')
    def health_check():
        """健康检查接口"""
        return api_response(
            success=True,
            message="服务正常运行",
            data={
                "status": "healthy",
                "timestamp": datetime.now().isoformat(),
                "version": "1.0.0"
            }
        )

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not Found"}), StatusCode.NOT_FOUND

    return app

def start_background_scheduler(app):
    """在API进程内启动定时采集"""
    from apscheduler.schedulers.background import BackgroundScheduler

    scheduler = BackgroundScheduler()
    schedule_ingestion(scheduler, app.config['INGEST_RUNNER'])
    scheduler.start()
    atexit.register(scheduler.shutdown)
    return scheduler

if __name__ == '__main__':
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    app = create_app()
    if INGEST_CONFIG['ENABLE_SCHEDULER']:
        start_background_scheduler(app)

    host = APP_CONFIG.get('host', '127.0.0.1')
    port = APP_CONFIG.get('port', 5172)
    debug = APP_CONFIG.get('debug', False)

    logger.info(f"Starting application on {host}:{port} (debug={debug})")
    app.run(host=host, port=port, debug=debug, use_reloader=False)
