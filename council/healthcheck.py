"""Ping every provider a debate will use before spending a long run on it."""

import asyncio
import logging

from council.providers.base import AIProvider

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 30.0


async def _ping(provider: AIProvider, timeout_sec: float) -> tuple[bool, str]:
    try:
        await asyncio.wait_for(provider.generate(_PING_PROMPT, round_number=0), timeout=timeout_sec)
    except TimeoutError:
        return False, f"No reply within {timeout_sec:g}s"
    except Exception as exc:
        return False, str(exc)
    return True, ""


async def run_health_checks(
    providers: dict[str, AIProvider],
    timeout_sec: float | None = None,
) -> dict[str, tuple[bool, str]]:
    """Ping all providers in parallel.

    Returns:
        Dict mapping provider name -> (ok, error_message); error_message is
        "" when ok is True.
    """
    timeout = _TIMEOUT_SEC if timeout_sec is None else timeout_sec
    names = list(providers)
    outcomes = await asyncio.gather(*(_ping(providers[n], timeout) for n in names))
    results = dict(zip(names, outcomes))
    for name, (ok, err) in results.items():
        if not ok:
            logger.warning("Health check failed for %s: %s", name, err)
    return results
