import redis

from .config import settings

# Connection is lazy: nothing is opened until the first command
redis_client = redis.Redis.from_url(
    settings.redis_url,
    socket_timeout=2.0,
    decode_responses=True,
)
