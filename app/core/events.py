from __future__ import annotations

import logging

from blinker import Namespace

logger = logging.getLogger(__name__)

_signals = Namespace()

request_created = _signals.signal("request-created")
request_updated = _signals.signal("request-updated")
concession_suspended = _signals.signal("concession-suspended")
concession_blocked = _signals.signal("concession-blocked")
concession_reactivated = _signals.signal("concession-reactivated")
cessation_result_registered = _signals.signal("cessation-result-registered")


def publish(signal, sender: str, **payload) -> None:
    """Fire-and-forget delivery to notification/audit receivers.

    Called after the unit of work has committed. A failing receiver is
    logged and never propagates into the caller.
    """
    for receiver in list(signal.receivers_for(sender)):
        try:
            receiver(sender, **payload)
        except Exception:
            logger.exception("Falha ao entregar evento %s para %r", signal.name, receiver)
