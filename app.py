from flask import Flask, jsonify
from extensions import db, migrate, cors
from dotenv import load_dotenv
import logging
import os

# 提前导入模型注册函数（明确显示依赖关系）
from models import register_models

from blueprints.invite import invite_bp
from utils.chain_oracle import ChainOracle
from utils.invite_manager import InviteLifecycleManager
from utils.invite_store import InviteStore

load_dotenv()


def configure_logging(level):
    logging.basicConfig(
        level=level,
        format='[%(asctime)s] %(levelname)s: %(message)s',
        handlers=[logging.StreamHandler()]
    )


def create_app(config=None, oracle=None):
    app = Flask(__name__)

    # ===== 配置 =====
    app.config.update(
        SQLALCHEMY_DATABASE_URI=os.getenv('DB_URI', 'sqlite:///invitations.db'),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        RPC_URL=os.getenv('RPC_URL', 'https://rpc.gnosischain.com'),
        RPC_TIMEOUT=float(os.getenv('RPC_TIMEOUT', '10')),
        REFERRAL_CONTRACT_ADDRESS=os.getenv('REFERRAL_CONTRACT_ADDRESS'),
        API_KEY=os.getenv('API_KEY'),
        AUTO_CREATE_TABLES=os.getenv('AUTO_CREATE_TABLES', 'True') == 'True',
        LOG_LEVEL=os.getenv('LOG_LEVEL', 'INFO'),
    )
    if config:
        app.config.update(config)

    configure_logging(app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # ===== 初始化扩展 =====
    db.init_app(app)
    migrate.init_app(app, db)
    # CORS 允许前端携带 x-api-key
    cors.init_app(app, allow_headers=['Origin', 'X-Requested-With', 'Content-Type', 'Accept', 'x-api-key'])

    with app.app_context():
        register_models()  # 确保在应用上下文中注册
        if app.config['AUTO_CREATE_TABLES']:
            db.create_all()

    # ===== 邀请生命周期管理 =====
    if oracle is None:
        oracle = ChainOracle.from_config(app.config)
    app.extensions['invite_manager'] = InviteLifecycleManager(InviteStore(db.session), oracle)

    # ===== 注册蓝图 =====
    app.register_blueprint(invite_bp)

    # 健康检查
    @app.route('/health')
    def health_check():
        stats = app.extensions['invite_manager'].stats()
        return jsonify({'status': 'ok', 'invites': stats})

    @app.errorhandler(500)
    def internal_error(e):
        original = getattr(e, 'original_exception', None)
        if original is not None:
            app.logger.error(f"Unhandled error: {original!r}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    return app


if __name__ == '__main__':
    app = create_app()
    port = int(os.getenv('PORT', '3000'))
    app.logger.info(f"Invitation Service running on port {port}")
    app.run(host='0.0.0.0', port=port)
