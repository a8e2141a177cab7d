"""Outbound interface to whatever enforces restriction."""
from __future__ import annotations

from .models import RestrictionMode


class Restrictor:
    """Enforces or lifts restriction on a selection of targets.

    Implementations must tolerate redundant calls: the controller applies the
    target mode on every evaluation, whether or not it changed.
    """

    def is_authorized(self) -> bool:
        """Return False when the Restrictor cannot be invoked right now."""
        return True

    async def async_apply(self, selection: list[str], mode: RestrictionMode) -> None:
        """Apply ``mode`` to every target in ``selection``.

        Raises:
            RestrictorError: enforcement failed; the next tick retries.
        """
        raise NotImplementedError
