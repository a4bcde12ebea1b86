"""Fire-and-forget contract for non-essential writes."""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from supportwidget.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_best_effort(
    awaitable: Awaitable[T],
    operation: str,
    timeout: Optional[float] = None
) -> Optional[T]:
    """
    Await a non-essential side effect with a bounded timeout.

    Any failure (timeout, storage error, bug) is logged and swallowed; the
    caller receives None and carries on with the user-facing response.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout or settings.STORAGE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"Best-effort '{operation}' timed out, skipped")
    except Exception as e:
        logger.warning(f"Best-effort '{operation}' failed, skipped: {e}", exc_info=True)
    return None
