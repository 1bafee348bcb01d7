"""
Server-side Lua scripts for compound job operations.

Each script runs atomically on the Redis server, so callers never
perform read-then-write sequences across round trips.
"""

from redis.asyncio import Redis

# KEYS[1] = lock key, ARGV[1] = token
RELEASE_LOCK = """
if redis.call("get", KEYS[1]) == ARGV[1] then
  return redis.call("del", KEYS[1])
end
return 0
"""

# KEYS[1] = target set, KEYS[2..n] = every other recognized set, ARGV[1] = job id
MOVE_TO_SET = """
for i = 2, #KEYS do
  redis.call("srem", KEYS[i], ARGV[1])
end
return redis.call("sadd", KEYS[1], ARGV[1])
"""

# KEYS[1] = active set, KEYS[2] = waiting set, KEYS[3] = lock key, ARGV[1] = job id
REQUEUE_STALLED = """
if redis.call("exists", KEYS[3]) == 1 then
  return 0
end
if redis.call("srem", KEYS[1], ARGV[1]) == 0 then
  return 0
end
redis.call("sadd", KEYS[2], ARGV[1])
return 1
"""

# KEYS[1] = status set, KEYS[2] = job record key, ARGV[1] = job id
REAP_ORPHAN = """
if redis.call("exists", KEYS[2]) == 1 then
  return 0
end
return redis.call("srem", KEYS[1], ARGV[1])
"""


class QueueScripts:
    """Scripts registered against one client (EVALSHA with EVAL fallback)."""

    def __init__(self, client: Redis):
        self.release_lock = client.register_script(RELEASE_LOCK)
        self.move_to_set = client.register_script(MOVE_TO_SET)
        self.requeue_stalled = client.register_script(REQUEUE_STALLED)
        self.reap_orphan = client.register_script(REAP_ORPHAN)
