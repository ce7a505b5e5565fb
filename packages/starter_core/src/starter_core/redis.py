"""
Redis helpers shared by the API and the worker.

The client is created by the caller (once per process, see resources.py);
nothing here connects at import time.
"""

import logging

import redis

logger = logging.getLogger(__name__)


def create_redis_client(url: str) -> redis.Redis:
    """Client with str responses. redis-py connects on the first command."""
    return redis.from_url(url, decode_responses=True)


def ensure_stream_group(
    client: redis.Redis,
    stream_name: str,
    group_name: str,
    start_id: str = "0",
) -> bool:
    """
    Create the consumer group (and the stream, via MKSTREAM) if missing.

    start_id "0" lets a new group see entries already in the stream;
    "$" only sees entries added afterwards.

    Returns:
        False when the group was already there (BUSYGROUP)
    """
    try:
        client.xgroup_create(stream_name, group_name, id=start_id, mkstream=True)
    except redis.ResponseError as e:
        if "BUSYGROUP" not in str(e):
            raise
        logger.debug(f"Group {group_name} already exists on {stream_name}")
        return False

    logger.info(f"Created group {group_name} on {stream_name}", extra={"stream": stream_name})
    return True


def get_pending_count(client: redis.Redis, stream_name: str, group_name: str) -> int:
    """Delivered-but-unacked entries for the group; 0 if the group is missing."""
    try:
        summary = client.xpending(stream_name, group_name)
    except redis.ResponseError:
        return 0
    return summary.get("pending", 0) if summary else 0
