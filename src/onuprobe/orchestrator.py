import asyncio
from typing import Iterable, Optional, Callable, Dict, List, Sequence
from tqdm import tqdm

from onuprobe.logging import get_logger
from onuprobe.models import LookupOutcome, LookupResult, OLTEndpoint
from onuprobe.systems.base import OLTSystem
from onuprobe.systems.telnet_olt import TelnetOLT
from onuprobe.systems.web_olt import WebOLT

log = get_logger(__name__)

DEFAULT_TIMEOUT = 60.0

SYSTEMS: Dict[str, Callable[[OLTEndpoint], OLTSystem]] = {
    "telnet": TelnetOLT,
    "http": WebOLT,
}

def build_system(endpoint: OLTEndpoint) -> OLTSystem:
    cls = SYSTEMS.get(endpoint.transport)
    if not cls:
        raise ValueError(f"Unsupported transport {endpoint.transport!r} for {endpoint.name}")
    return cls(endpoint)


class OLTRegistry:
    """
    One system object per endpoint name, so a web session key outlives a single
    lookup and every endpoint keeps its own lock and cache.
    """
    def __init__(self, factory: Callable[[OLTEndpoint], OLTSystem] = build_system):
        self.factory = factory
        self._systems: Dict[str, OLTSystem] = {}

    async def get(self, endpoint: OLTEndpoint) -> OLTSystem:
        sys_ = self._systems.get(endpoint.name)
        if sys_ is None or sys_.endpoint != endpoint:
            if sys_ is not None:
                # endpoint edited; its old session goes with it
                try:
                    await sys_.close()
                except Exception as e:
                    log.debug(f"closing replaced {sys_.endpoint.name}: {e}")
            sys_ = self.factory(endpoint)
            self._systems[endpoint.name] = sys_
        return sys_

    async def close(self):
        for sys_ in list(self._systems.values()):
            try:
                await sys_.close()
            except Exception as e:
                log.debug(f"closing {sys_.endpoint.name}: {e}")
        self._systems.clear()


async def lookup_onu(endpoint: OLTEndpoint, description: str, *,
                     registry: Optional[OLTRegistry] = None,
                     timeout: float = DEFAULT_TIMEOUT) -> LookupResult:
    """
    Ask one OLT about one description. Never raises for device trouble; the
    outcome says what happened. The whole call is raced against `timeout`;
    cancelling a telnet lookup tears its connection down.
    """
    if not endpoint.enabled:
        log.warning(f"{endpoint.name} is disabled, skipping")
        return LookupResult(endpoint.name, description, LookupOutcome.DISABLED)

    own = registry is None
    reg = registry or OLTRegistry()
    try:
        system = await reg.get(endpoint)
        return await asyncio.wait_for(system.lookup(description), timeout=timeout)
    except asyncio.TimeoutError:
        log.error(f"{endpoint.name}: lookup of {description!r} timed out after {timeout:.0f}s")
        return LookupResult(endpoint.name, description, LookupOutcome.UNREACHABLE,
                            error=f"timed out after {timeout:.0f}s")
    finally:
        if own:
            await reg.close()


async def find_onu(endpoints: Sequence[OLTEndpoint], description: str, *,
                   registry: Optional[OLTRegistry] = None,
                   timeout: float = DEFAULT_TIMEOUT) -> LookupResult:
    """Try endpoints in order; the first FOUND wins."""
    own = registry is None
    reg = registry or OLTRegistry()
    last: Optional[LookupResult] = None
    try:
        for ep in endpoints:
            res = await lookup_onu(ep, description, registry=reg, timeout=timeout)
            if res.found:
                return res
            if res.outcome is not LookupOutcome.DISABLED:
                last = res
        return last or LookupResult("-", description, LookupOutcome.NOT_FOUND,
                                    error="no enabled OLT endpoints")
    finally:
        if own:
            await reg.close()


async def lookup_many(endpoints: Sequence[OLTEndpoint], descriptions: Iterable[str], *,
                      concurrency: int = 4, show_progress: bool = True,
                      timeout: float = DEFAULT_TIMEOUT,
                      registry: Optional[OLTRegistry] = None) -> List[LookupResult]:
    """
    Batch find_onu over many descriptions. Up to `concurrency` descriptions are
    in flight, but each endpoint only ever serves one lookup at a time (its
    system's lock). Results keep input order.
    """
    descs = [d.strip() for d in descriptions if d and d.strip()]
    sem = asyncio.Semaphore(max(1, concurrency))
    own = registry is None
    reg = registry or OLTRegistry()
    results: List[Optional[LookupResult]] = [None] * len(descs)

    async def one(i: int, desc: str):
        async with sem:
            try:
                results[i] = await find_onu(endpoints, desc, registry=reg, timeout=timeout)
            except Exception as e:
                log.error(f"lookup of {desc!r} failed: {e}")
                results[i] = LookupResult("-", desc, LookupOutcome.UNREACHABLE, error=str(e))
            return i

    try:
        with tqdm(total=len(descs), desc="Looking up ONUs", disable=not show_progress,
                  leave=True, dynamic_ncols=True) as bar:
            for fut in asyncio.as_completed([one(i, d) for i, d in enumerate(descs)]):
                i = await fut
                bar.set_postfix_str(f"{descs[i]}: {results[i].outcome.value}", refresh=False)
                bar.update(1)
    finally:
        if own:
            await reg.close()
    return [r for r in results if r is not None]
