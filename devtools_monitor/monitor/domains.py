"""Per-domain activation against an attached protocol session.

Each domain is enabled by its own command and failures stay local: a
domain that fails to enable is reported as disabled and does not stop the
activation of the domains after it.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Set, Tuple

from ..models.session import Domain, DomainActivationReport
from .dispatcher import EventDispatcher
from .exceptions import DomainActivationError
from .transport import CDPTransport

logger = logging.getLogger(__name__)


ENABLE_COMMANDS: Dict[Domain, str] = {domain: f"{domain.value}.enable" for domain in Domain}
DISABLE_COMMANDS: Dict[Domain, str] = {domain: f"{domain.value}.disable" for domain in Domain}

# Extra commands sent after the primary one. Page console.* calls only
# arrive as Console.messageAdded once Console.enable has been sent.
COMPANION_ENABLE_COMMANDS: Dict[Domain, Tuple[str, ...]] = {
    Domain.LOG: ("Console.enable",),
}
COMPANION_DISABLE_COMMANDS: Dict[Domain, Tuple[str, ...]] = {
    Domain.LOG: ("Console.disable",),
}

# Fetch pauses every matching request once enabled, it is only activated
# together with an auto-continue handler by the InterventionController.
MONITORING_DOMAINS = (
    Domain.NETWORK,
    Domain.LOG,
    Domain.RUNTIME,
    Domain.PERFORMANCE,
    Domain.SECURITY,
    Domain.PAGE,
    Domain.DOM,
)


class DomainActivator:
    """Enables and disables protocol domains independently."""

    def __init__(self, transport: CDPTransport, dispatcher: Optional[EventDispatcher] = None):
        """Initialize domain activator.

        Args:
            transport: Attached protocol session
            dispatcher: Dispatcher whose built-in handlers are registered
                for each domain before its enable command is sent
        """
        self.transport = transport
        self.dispatcher = dispatcher
        self._lock = threading.Lock()
        self._enabled: Set[Domain] = set()

    def is_enabled(self, domain: Domain) -> bool:
        with self._lock:
            return domain in self._enabled

    @property
    def enabled(self) -> Set[Domain]:
        with self._lock:
            return set(self._enabled)

    async def enable(self, domain: Domain, options: Optional[Dict[str, Any]] = None) -> bool:
        """Enable one domain.

        Args:
            domain: Domain to enable
            options: Parameters for the domain's enable command

        Returns:
            True if the domain is enabled after the call
        """
        if self.is_enabled(domain):
            logger.debug(f"{domain.value} domain already enabled")
            return True
        return await self._activate(domain, options) is None

    async def _activate(self, domain: Domain, options: Optional[Dict[str, Any]]) -> Optional[str]:
        """Send a domain's enable command.

        Returns:
            None on success, otherwise the failure reason
        """
        if self.dispatcher is not None:
            # Listeners are attached first, the domain gate opens only after the ack
            self.dispatcher.register_domain_handlers(domain)
        try:
            await self.transport.send(ENABLE_COMMANDS[domain], options or {})
        except Exception as e:
            failure = DomainActivationError(domain.value, str(e))
            logger.error(failure.message)
            return failure.details["reason"]

        await self._send_companions(domain, COMPANION_ENABLE_COMMANDS)

        with self._lock:
            self._enabled.add(domain)
        logger.info(f"{domain.value} monitoring enabled")
        return None

    async def _send_companions(self, domain: Domain, commands: Dict[Domain, Tuple[str, ...]]) -> None:
        """Send a domain's extra commands. Failures are logged only."""
        for command in commands.get(domain, ()):
            try:
                await self.transport.send(command, {})
            except Exception as e:
                logger.warning(f"{command} failed, {domain.value} domain stays enabled: {e}")

    async def enable_all(
        self,
        domains: Optional[Iterable[Domain]] = None,
        options: Optional[Dict[Domain, Dict[str, Any]]] = None,
    ) -> DomainActivationReport:
        """Enable several domains, collecting a per-domain report.

        Args:
            domains: Domains to enable, defaults to every monitoring domain
            options: Optional enable parameters per domain

        Returns:
            Report with an entry for every requested domain
        """
        report = DomainActivationReport()
        options = options or {}

        for domain in (domains if domains is not None else MONITORING_DOMAINS):
            if self.is_enabled(domain):
                report.results[domain] = True
                continue
            reason = await self._activate(domain, options.get(domain))
            report.results[domain] = reason is None
            if reason is not None:
                report.errors[domain] = reason

        if report.failed:
            logger.warning(
                f"Enabled {len(report.enabled)}/{len(report.results)} domains; "
                f"failed: {[d.value for d in report.failed]}"
            )
        else:
            logger.info(f"All requested CDP domains enabled: {[d.value for d in report.enabled]}")
        return report

    async def disable(self, domain: Domain) -> bool:
        """Disable one domain. Its events are dropped from this point on.

        Returns:
            True if the disable command was acknowledged
        """
        with self._lock:
            was_enabled = domain in self._enabled
            self._enabled.discard(domain)

        if not was_enabled:
            return True

        try:
            await self.transport.send(DISABLE_COMMANDS[domain], {})
        except Exception as e:
            logger.warning(f"Failed to disable {domain.value} domain: {e}")
            return False

        await self._send_companions(domain, COMPANION_DISABLE_COMMANDS)

        logger.info(f"{domain.value} monitoring disabled")
        return True

    def reset(self) -> None:
        """Forget every enabled domain without sending commands."""
        with self._lock:
            self._enabled.clear()

    def __repr__(self) -> str:
        return f"DomainActivator(enabled={sorted(d.value for d in self.enabled)})"
