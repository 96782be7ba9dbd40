"""One-time, concurrency-safe initialization of the external services.

The gate starts the Gemini and MongoDB setup routines together the first time
anyone asks for readiness, and every later caller sees that same outcome.
A capability that fails stays unavailable for the life of the process and
request handling uses its fallbacks instead.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_ATTEMPTED = "not_attempted"
ATTEMPTING = "attempting"
COMPLETED = "completed"


class Capability(Protocol):
    async def init(self) -> bool:
        ...


class DisabledCapability:
    """Stand-in for a service that is switched off by configuration"""

    def __init__(self, name: str):
        self.name = name

    async def init(self) -> bool:
        logger.info(f"{self.name} disabled, skipping initialization")
        return False


class SingleFlight(Generic[T]):
    """Run a coroutine function at most once and share its outcome.

    The first caller of ``run`` creates the task; everyone else, before or
    after it finishes, awaits the same task. Waiters are shielded so that a
    cancelled caller never cancels the shared work.
    """

    def __init__(self, func: Callable[[], Awaitable[T]]):
        self._func = func
        self._future: Optional[asyncio.Future] = None

    @property
    def started(self) -> bool:
        return self._future is not None

    @property
    def done(self) -> bool:
        return self._future is not None and self._future.done()

    async def run(self) -> T:
        # No await between the check and the assignment, so only one caller can start the task
        if self._future is None:
            self._future = asyncio.ensure_future(self._func())
        return await asyncio.shield(self._future)


@dataclass(frozen=True)
class ReadinessResult:
    text_service_ready: bool
    store_service_ready: bool

    def as_services(self) -> Dict[str, bool]:
        return {"ai": self.text_service_ready, "database": self.store_service_ready}


async def _attempt(name: str, capability: Capability) -> bool:
    try:
        ready = bool(await capability.init())
    except Exception as e:
        logger.error(f"{name} initialization failed ({type(e).__name__}): {e}")
        return False

    if ready:
        logger.info(f"{name} initialized")
    else:
        logger.warning(f"{name} not available, using fallback")
    return ready


class ReadinessGate:
    def __init__(self, text_service: Capability, store_service: Capability,
                 text_name: str = "Gemini", store_name: str = "MongoDB"):
        self.text_service = text_service
        self.store_service = store_service
        self.text_name = text_name
        self.store_name = store_name
        self._result: Optional[ReadinessResult] = None
        self._flight: SingleFlight[ReadinessResult] = SingleFlight(self._initialize)

    @property
    def state(self) -> str:
        if self._result is not None:
            return COMPLETED
        if self._flight.started:
            return ATTEMPTING
        return NOT_ATTEMPTED

    @property
    def attempted(self) -> bool:
        return self._flight.started

    @property
    def result(self) -> Optional[ReadinessResult]:
        return self._result

    async def ensure_ready(self) -> ReadinessResult:
        if self._result is not None:
            return self._result
        return await self._flight.run()

    def is_text_service_ready(self) -> bool:
        return self._result is not None and self._result.text_service_ready

    def is_store_service_ready(self) -> bool:
        return self._result is not None and self._result.store_service_ready

    def snapshot(self) -> Dict[str, Any]:
        return {
            "ai": self.is_text_service_ready(),
            "database": self.is_store_service_ready(),
        }

    async def _initialize(self) -> ReadinessResult:
        logger.info("Initializing services...")
        text_ready, store_ready = await asyncio.gather(
            _attempt(self.text_name, self.text_service),
            _attempt(self.store_name, self.store_service),
        )
        result = ReadinessResult(text_service_ready=text_ready, store_service_ready=store_ready)
        self._result = result
        logger.info(f"Initialization complete: {self.text_name}={text_ready}, {self.store_name}={store_ready}")
        return result
