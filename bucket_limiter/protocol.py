"""
Marshalling between consumption requests and the bucket Lua script.

The script in ``limiter.lua`` does all of the read/refill/check/commit work
inside Redis; this module only shapes its arguments and decodes its reply.
"""

from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from .errors import StoreError
from .models import ConsumptionRequest, Denial

SCRIPT_PATH = Path(__file__).parent / "limiter.lua"

ARGS_PER_REQUEST = 5

DEFAULT_EXPIRE_MULTIPLIER = 2
DEFAULT_EXPIRE_PADDING_SECONDS = 15


def load_script_text(override: Optional[str] = None) -> str:
    """Return the Lua source, or ``override`` when one is given."""
    if override is not None:
        return override
    return SCRIPT_PATH.read_text(encoding="utf-8")


def get_storage_key(prefix: str, resource_key: str, interval: int) -> str:
    """Storage key for a bucket; the interval is part of the bucket identity."""
    return f"{prefix}:{resource_key}:{interval}"


def expire_seconds(interval: int,
                   multiplier: int = DEFAULT_EXPIRE_MULTIPLIER,
                   padding: int = DEFAULT_EXPIRE_PADDING_SECONDS) -> int:
    """Idle TTL of a bucket key, ``2 * interval + 15`` with the defaults."""
    return multiplier * interval + padding


def build_invocation(
    requests: Sequence[ConsumptionRequest],
    now_ms: int,
    prefix: str,
    expire_multiplier: int = DEFAULT_EXPIRE_MULTIPLIER,
    expire_padding: int = DEFAULT_EXPIRE_PADDING_SECONDS,
) -> Tuple[List[str], List[int]]:
    """Build the KEYS and ARGV lists for one batch.

    Every request contributes one key and the five arguments
    ``interval_ms, capacity, n, now_ms, expire_seconds``. ``now_ms`` is the
    same for every request so the whole batch is judged at one instant.
    """
    keys: List[str] = []
    args: List[int] = []
    for request in requests:
        keys.append(get_storage_key(prefix, request.resource_key, request.interval))
        args.extend([
            request.interval * 1000,
            request.capacity,
            request.n,
            now_ms,
            expire_seconds(request.interval, expire_multiplier, expire_padding),
        ])
    return keys, args


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def decode_result(
    raw: Any,
    requests: Sequence[ConsumptionRequest],
    prefix: str,
) -> Optional[Denial]:
    """Decode the script reply.

    Returns ``None`` when the batch was admitted, otherwise the Denial for the
    first resource that was refused. The script reports storage keys, so the
    caller's resource key is recovered from the matching request.
    """
    if not isinstance(raw, (list, tuple)) or len(raw) != 5:
        raise StoreError("Unexpected reply from limiter script", details={"reply": repr(raw)})

    try:
        storage_key = _to_str(raw[0])
        interval_ms, capacity, tokens, last_fill_at = (int(value) for value in raw[1:])
    except (TypeError, ValueError, UnicodeDecodeError) as e:
        raise StoreError("Malformed reply from limiter script", cause=e,
                         details={"reply": repr(raw)}) from e

    if interval_ms == 0 and capacity == 0 and tokens == 0 and last_fill_at == 0:
        return None

    interval = interval_ms // 1000
    resource_key = storage_key
    for request in requests:
        if get_storage_key(prefix, request.resource_key, request.interval) == storage_key:
            resource_key = request.resource_key
            interval = request.interval
            break

    return Denial(
        resource_key=resource_key,
        interval=interval,
        capacity=capacity,
        current_tokens=tokens,
        last_fill_at=last_fill_at,
    )
