import redis
import logging
from typing import Optional

from sitecrawler.exceptions import BackendConnectionError, ConfigurationError

logger = logging.getLogger(__name__)


def connect_redis(redis_url: Optional[str]) -> redis.Redis:
    """
    Creates a Redis client for the work queue and job store and checks the connection.
    Raises ConfigurationError when no URL is configured.
    """
    if not redis_url:
        raise ConfigurationError("REDIS_URL is not set")

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        client.ping()
    except redis.exceptions.ConnectionError as e:
        logger.error(f"Could not connect to Redis at {redis_url}: {e}")
        raise BackendConnectionError("Failed to connect to Redis") from e
    except ValueError as e:
        # redis.from_url rejects unsupported schemes with ValueError
        raise ConfigurationError(f"Invalid REDIS_URL: {e}") from e

    logger.info("Connected to Redis successfully.")
    return client
