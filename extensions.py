# FILE: ecoscan-backend/extensions.py

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(
    # The default key is the IP address of the user making the request.
    key_func=get_remote_address,
    # Passed to the Redis client so responses come back as strings.
    storage_options={"decode_responses": True},
    # Storage is configured from RATELIMIT_STORAGE_URI in main.create_app.
    default_limits=["500 per day", "100 per hour"]
)
