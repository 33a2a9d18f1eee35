import hashlib
import json
import logging

from dependencies import get_redis_client, ANALYSIS_CACHE_TTL

def get_analysis_cache_key(payload):
    """Stable Redis key for one normalized survey payload."""
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False)
    return f"carbon_analysis:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

def get_cached_analysis(payload):
    redis_client = get_redis_client()
    if not redis_client:
        return None
    try:
        cached = redis_client.get(get_analysis_cache_key(payload))
        return json.loads(cached) if cached else None
    except Exception as e:
        logging.warning(f"Analysis cache read failed: {e}")
        return None

def cache_analysis(payload, raw_result):
    """Caches the raw AI reply so the same answers always get the same analysis."""
    redis_client = get_redis_client()
    if not redis_client:
        return
    try:
        redis_client.set(get_analysis_cache_key(payload), json.dumps(raw_result, default=str), ex=ANALYSIS_CACHE_TTL)
    except Exception as e:
        logging.warning(f"Analysis cache write failed: {e}")
