import secrets
import string
import time

_BASE36 = string.digits + string.ascii_lowercase


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def new_message_id() -> str:
    # msg_<epoch-ms>_<9 base-36 chars>
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"msg_{_epoch_ms()}_{suffix}"


def new_order_id() -> str:
    # Short suffix keeps ids unique when two orders land in the same ms.
    return f"ORD-{_epoch_ms()}-{secrets.token_hex(2).upper()}"


def new_payment_id() -> str:
    return f"pay_{_epoch_ms()}_{secrets.token_hex(3)}"
