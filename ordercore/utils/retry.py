# ordercore/utils/retry.py
from redis.exceptions import RedisError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ordercore.domain.errors import CartConflict, OrderNumberCollision, OrderStatusConflict
from ordercore.utils.settings import (
    CART_CONFLICT_MAX_ATTEMPTS,
    ORDER_NUMBER_MAX_ATTEMPTS,
    ORDER_STATUS_MAX_ATTEMPTS,
)


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(RedisError),
    )


def cart_conflict_retry():
    # the loser of a version race re-reads the cart and tries again
    return retry(
        reraise=True,
        stop=stop_after_attempt(CART_CONFLICT_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.01, min=0.01, max=0.1),
        retry=retry_if_exception_type(CartConflict),
    )


def order_number_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(ORDER_NUMBER_MAX_ATTEMPTS),
        retry=retry_if_exception_type(OrderNumberCollision),
    )


def order_status_retry():
    # po przegranym compare-and-set status czytany od nowa i tabela sprawdzana ponownie
    return retry(
        reraise=True,
        stop=stop_after_attempt(ORDER_STATUS_MAX_ATTEMPTS),
        retry=retry_if_exception_type(OrderStatusConflict),
    )
