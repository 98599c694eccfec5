from typing import Optional, Any, Union
from redis.exceptions import RedisError
import json
import logging
from datetime import timedelta
import redis.asyncio as aioredis


class RedisClient:
    """
    Async Redis client backed by a connection pool.
    """

    def __init__(
        self,
        logger: logging.Logger,
        host: str = "localhost",
        port: int = 6379,
        password: Optional[str] = None,
        ssl: bool = False,
    ):
        self.logger = logger
        self.host = host
        self.port = port
        self.password = password
        self.ssl = ssl
        self._redis: Optional[aioredis.Redis] = None

    @property
    def client(self) -> aioredis.Redis:
        """Get or create the pooled client"""
        if self._redis is None:
            self._redis = aioredis.Redis(
                host=self.host,
                port=self.port,
                password=self.password,
                ssl=self.ssl,
                max_connections=20,
                decode_responses=True,  # Auto-decode responses for convenience
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
                retry_on_timeout=True,
            )
        return self._redis

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            self.logger.error(f"Failed to ping Redis at {self.host}:{self.port}: {str(e)}")
            raise

    async def close(self) -> None:
        """Close the connection pool"""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis connection pool closed")

    async def set_value(self, key: str, value: Any, expiry: Optional[Union[int, timedelta]] = None) -> bool:
        """
        Set a key-value pair, optionally with expiry

        Args:
            key: Key to set
            value: Value to set (will be JSON serialized if not a scalar)
            expiry: Expiry time in seconds or timedelta
        """
        try:
            if not isinstance(value, (str, int, float, bool)):
                value = json.dumps(value)
            if isinstance(expiry, timedelta):
                expiry = int(expiry.total_seconds())
            return bool(await self.client.set(key, value, ex=expiry))
        except RedisError as e:
            self.logger.error(f"Error setting key {key}: {str(e)}")
            raise

    async def get_value(self, key: str, default: Any = None) -> Any:
        """Get value for a key, JSON-decoded when it looks like JSON."""
        try:
            value: Optional[str] = await self.client.get(key)
        except RedisError as e:
            self.logger.error(f"Error getting key {key}: {str(e)}")
            raise
        if value is None:
            return default
        if isinstance(value, str) and value[:1] in ("{", "["):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value

    async def delete(self, key: str) -> int:
        try:
            return await self.client.delete(key)
        except RedisError as e:
            self.logger.error(f"Error deleting key {key}: {str(e)}")
            raise
