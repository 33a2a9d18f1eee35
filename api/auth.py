# FILE: ecoscan-backend/api/auth.py

from functools import wraps
from flask import request, current_app
import jwt

from .error_utils import create_error_response

def _decode_token(token):
    """Tries each configured key so tokens survive a key rotation."""
    last_error = None
    for secret in current_app.config.get('JWT_SECRET_KEYS', []):
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            raise
        except jwt.InvalidTokenError as e:
            last_error = e
    raise last_error or jwt.InvalidTokenError("No JWT secret configured")

def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization')
        if not auth_header or not auth_header.startswith('Bearer '):
            return create_error_response("TOKEN_MISSING", status_code=401)
        token = auth_header.split(' ')[1]
        try:
            data = _decode_token(token)
            kwargs['user_id'] = data['user_id']
        except (jwt.ExpiredSignatureError, jwt.InvalidTokenError, KeyError):
            return create_error_response("TOKEN_INVALID", status_code=401)
        return f(*args, **kwargs)
    return decorated
