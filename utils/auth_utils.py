# auth_utils.py
import hmac
from flask import request, current_app
from functools import wraps

from utils.errors import Unauthorized


def api_key_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('API_KEY')

        # 从请求头获取 x-api-key
        api_key = request.headers.get('x-api-key')
        if not expected or not api_key:
            raise Unauthorized()

        if not hmac.compare_digest(api_key.encode(), expected.encode()):
            current_app.logger.warning(f"Rejected admin request to {request.path}: bad api key")
            raise Unauthorized()

        return f(*args, **kwargs)
    return decorated_function
