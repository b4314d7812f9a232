"""Redis-backed sample cache.

The acquisition worker keeps each session's IMU stream under
``<prefix><session_id>``. Two encodings exist in the wild under the same
logical key:

- a Redis list whose elements are JSON objects (current acquisition worker)
- a plain string holding one JSON array of objects (older writers)

Both are decoded here, so callers only ever see ``list[Sample]``.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from typing import Any, Optional

import redis
from pydantic import TypeAdapter

from .errors import TransientFetchError
from .models import Sample

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "imu:session:"

_SAMPLE_ADAPTER = TypeAdapter(Sample)


def _fold(name: str) -> str:
    return name.replace("_", "").lower()


# accelX / AccelX / accel_x -> accel_x
_FIELD_LOOKUP = {_fold(f.name): f.name for f in dataclasses.fields(Sample)}


def decode_sample(item: Any) -> Sample:
    """Decode one cached element (JSON text or already parsed mapping).

    Raises ``ValueError`` (pydantic ``ValidationError`` included) on bad input.
    """
    if isinstance(item, (bytes, bytearray)):
        item = item.decode("utf-8")
    if isinstance(item, str):
        item = json.loads(item)
    if not isinstance(item, dict):
        raise ValueError(f"expected a JSON object, got {type(item).__name__}")

    data = {}
    for key, value in item.items():
        name = _FIELD_LOOKUP.get(_fold(str(key)))
        if name is not None:
            data[name] = value
    return _SAMPLE_ADAPTER.validate_python(data)


class RedisSampleCache:
    """Reads cached IMU samples for a session.

    Missing keys and undecodable elements degrade to fewer (or zero)
    samples. Transport errors raise ``TransientFetchError`` so the session
    stays pending and is retried on a later cycle.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        client: Optional[redis.Redis] = None,
    ):
        self._url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self._key_prefix = key_prefix
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
            logger.info("[REDIS] Client created: %s", self._url.split("@")[-1])
        return self._client

    def key_for(self, session_id: str) -> str:
        return f"{self._key_prefix}{session_id}"

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.exceptions.RedisError as e:
            logger.warning("[REDIS] Ping failed: %s", e)
            return False

    def fetch_samples(self, session_id: str) -> list[Sample]:
        key = self.key_for(session_id)
        logger.debug("[REDIS] Fetching session data key=%s", key)

        try:
            raw_items = self._read_raw(key)
        except redis.exceptions.RedisError as e:
            logger.error("[REDIS] Fetch failed for session %s: %s", session_id, e)
            raise TransientFetchError(session_id, "redis", e) from e

        if not raw_items:
            logger.warning("[REDIS] No data found for session %s", session_id)
            return []

        samples: list[Sample] = []
        failures = 0
        for item in raw_items:
            if item is None:
                continue
            try:
                samples.append(decode_sample(item))
            except ValueError as e:
                failures += 1
                if failures == 1:
                    logger.warning(
                        "[REDIS] Failed to decode data point for session %s: %s raw=%.100s",
                        session_id, e, str(item),
                    )

        if failures:
            logger.warning(
                "[REDIS] Decode failures for session %s: %d out of %d records",
                session_id, failures, len(raw_items),
            )

        logger.info(
            "[REDIS] Retrieved %d data points for session %s (raw=%d failures=%d)",
            len(samples), session_id, len(raw_items), failures,
        )
        return samples

    def _read_raw(self, key: str) -> list[Any]:
        key_type = self.client.type(key)
        if isinstance(key_type, bytes):
            key_type = key_type.decode("utf-8")

        if key_type == "list":
            return list(self.client.lrange(key, 0, -1))
        if key_type == "string":
            return _split_json_array(self.client.get(key), key)
        if key_type != "none":
            logger.warning("[REDIS] Unsupported key type %s for %s", key_type, key)
        return []

    def session_exists(self, session_id: str) -> bool:
        key = self.key_for(session_id)
        try:
            return bool(self.client.exists(key))
        except redis.exceptions.RedisError as e:
            logger.error("[REDIS] Exists check failed for session %s: %s", session_id, e)
            return False

    def delete_session_data(self, session_id: str) -> None:
        try:
            self.client.delete(self.key_for(session_id))
            logger.info("[REDIS] Deleted session data for session %s", session_id)
        except redis.exceptions.RedisError as e:
            logger.error("[REDIS] Delete failed for session %s: %s", session_id, e)

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except redis.exceptions.RedisError as e:
                logger.debug("[REDIS] Close failed: %s", e)
            self._client = None


def _split_json_array(value: Any, key: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    try:
        parsed = json.loads(value)
    except ValueError as e:
        logger.warning("[REDIS] Value under %s is not valid JSON: %s", key, e)
        return []
    if not isinstance(parsed, list):
        logger.warning("[REDIS] Value under %s is not a JSON array", key)
        return []
    return parsed
