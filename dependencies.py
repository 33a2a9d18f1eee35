"""
Dependency container for the EcoScan backend.
Shared clients are created lazily on first use so that the Flask app, the
Celery worker and the tests can import this module without credentials.
"""

import logging
import os
import threading

import firebase_admin
import redis
from dotenv import load_dotenv
from firebase_admin import credentials
from google.cloud import firestore
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

load_dotenv()

# --- Environment variables ---
REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.5-flash')
ANALYSIS_CACHE_TTL = int(os.environ.get('ANALYSIS_CACHE_TTL', '3600'))

# --- JWT Secret Keys, rotation order: current, previous, next ---
JWT_SECRET_KEYS = [
    os.environ.get(f'JWT_SECRET_KEY_{slot}') for slot in ('CURRENT', 'PREVIOUS', 'NEXT')
]
JWT_SECRET_KEYS = [key for key in JWT_SECRET_KEYS if key]
if not JWT_SECRET_KEYS and os.environ.get("JWT_SECRET_KEY"):
    JWT_SECRET_KEYS = [os.environ.get("JWT_SECRET_KEY")]

# --- Gemini API Keys, up to 4 for redundancy ---
GEMINI_API_KEYS = [os.environ.get(f"GEMINI_API_KEY_{i+1}") for i in range(4)]
ACTIVE_GEMINI_KEYS = [key for key in GEMINI_API_KEYS if key]
if not ACTIVE_GEMINI_KEYS and os.environ.get("GEMINI_API_KEY"):
    ACTIVE_GEMINI_KEYS = [os.environ.get("GEMINI_API_KEY")]

# --- Lazily initialized clients ---
_db = None
_db_lock = threading.Lock()
_redis_local = threading.local()


def _initialize_firebase():
    """Initializes the Firebase Admin SDK once, from GOOGLE_APPLICATION_CREDENTIALS."""
    if firebase_admin._apps:
        return
    firebase_admin.initialize_app(credentials.ApplicationDefault())
    logging.info("Firebase Admin SDK initialized for the Firestore client.")


def get_db():
    global _db
    if _db is None:
        with _db_lock:
            if _db is None:
                _initialize_firebase()
                _db = firestore.Client()
    return _db


def get_redis_client():
    """
    Thread-local Redis client with retry, or None when Redis is unreachable.
    Callers skip caching when this returns None.
    """
    if not hasattr(_redis_local, 'connection'):
        try:
            retry = Retry(ExponentialBackoff(), retries=3)
            connection_pool = redis.ConnectionPool.from_url(
                REDIS_URL,
                decode_responses=True,
                retry=retry,
                max_connections=20,
                health_check_interval=30,
                socket_connect_timeout=5,
                socket_timeout=10
            )
            _redis_local.connection = redis.Redis(connection_pool=connection_pool)
            _redis_local.connection.ping()
            logging.info("Redis connection pool initialized successfully")
        except redis.exceptions.ConnectionError as e:
            logging.error(f"Failed to connect to Redis: {e}")
            _redis_local.connection = None
    return _redis_local.connection


def get_balance_store():
    from balance_store import FirestoreBalanceStore  # Local import to avoid circular dependencies
    return FirestoreBalanceStore(get_db)
