# ordercore/services/lock_service.py
import uuid

import redis

from ordercore.utils.retry import redis_retry
from ordercore.utils.settings import REDIS_URL, CHECKOUT_LOCK_TTL_SECONDS
from ordercore.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje atomowo przez lua, skrypt dziala jako jedna nieprzerywalna operacja
#nie mozna wcisnac sie miedzy GET a DEL, wiec tylko wlasciciel tokenu zwalnia locka


class LockService:
    """
    -lock na checkout danego koszyka (double submit)
    -wartosc to token proby checkoutu, zwalnia tylko ten kto zalozyl
    -TTL zeby padniety proces nie blokowal koszyka na zawsze
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def new_token() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def _key(cart_id: int) -> str:
        return f"cart:{cart_id}:checkout"

    @redis_retry()
    def acquire_checkout_lock(self, cart_id: int, token: str, ttl: int = CHECKOUT_LOCK_TTL_SECONDS) -> bool:
        key = self._key(cart_id)
        logger.info(f"Acquire lock {key}")
        #SET cart:1:checkout "<token>" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=token,
                nx=True,
                ex=ttl,
            )
        )

    @redis_retry()
    def release_checkout_lock(self, cart_id: int, token: str) -> bool:
        key = self._key(cart_id)
        logger.info(f"Release lock {key}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
