"""Authorization gate — the entry point other features use to gate actions.

``attempt`` turns an ``authorize`` decision into exactly one outcome: the
action callback runs, or the caller sees a denial notice. Presentation is
injected as a ``Notifier`` so the gate itself stays platform-agnostic.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, TypeVar

from ..core.config import DEFAULT_DENIAL_TEMPLATE, ConfigurationError, Platform, check_denial_template, settings
from ..schemas.access import PERMISSION_LABELS
from .access_store import AccessRecordStore
from .permission_service import authorize
from .role_ranking import sort_by_role

logger = logging.getLogger(__name__)

T = TypeVar("T")

Notifier = Callable[[str], None]

DENIAL_ALERT_TITLE = "Permission needed"


def platform_notifier(
    show_toast: Callable[[str], Any],
    show_alert: Callable[[str, str], Any],
    platform: Optional[Platform] = None,
) -> Notifier:
    """Build a notifier: a short toast on Android, a titled alert elsewhere.

    *platform* defaults to the configured ``settings.platform``.
    """
    platform = platform or settings.platform
    if platform == Platform.ANDROID:
        return lambda message: show_toast(message)
    return lambda message: show_alert(DENIAL_ALERT_TITLE, message)


def logging_notifier(message: str) -> None:
    """Fallback notifier for headless callers."""
    logger.warning("Permission denied: %s", message)


class AuthorizationGate:
    """Gates user-visible actions on the caller's companion permissions."""

    def __init__(
        self,
        store: AccessRecordStore,
        notifier: Optional[Notifier] = None,
        denial_template: Optional[str] = None,
        default_label: Optional[str] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier or logging_notifier
        template = denial_template or settings.denial_message_template
        try:
            self.denial_template = check_denial_template(template)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        self.default_label = default_label or settings.default_permission_label

    def authorize(self, companion_id: Optional[str], permission_key: Optional[str] = None) -> bool:
        return authorize(self.store.state, companion_id, permission_key)

    def denial_message(self, permission_key: Optional[str], permission_label: Optional[str]) -> str:
        label = permission_label
        if not label:
            known = PERMISSION_LABELS.get(permission_key) if isinstance(permission_key, str) else None
            label = known or self.default_label
        return self.denial_template.format(label=label)

    def attempt(
        self,
        companion_id: Optional[str],
        permission_key: Optional[str],
        permission_label: Optional[str],
        on_authorized: Callable[[], Any],
    ) -> bool:
        """Run *on_authorized* if permitted, otherwise show one denial notice.

        Returns:
            True if the callback ran, False if the caller was denied.
        """
        try:
            allowed = self.authorize(companion_id, permission_key)
        except Exception:
            # Malformed input counts as a denial.
            logger.exception("Authorization check failed", extra={"companion_id": companion_id})
            allowed = False

        if allowed:
            on_authorized()
            return True

        try:
            message = self.denial_message(permission_key, permission_label)
        except Exception:
            logger.exception("Denial message could not be built")
            message = DEFAULT_DENIAL_TEMPLATE.format(label=self.default_label)
        logger.info(
            "Denied %s on companion %s",
            permission_key or "access", companion_id,
        )
        try:
            self.notifier(message)
        except Exception:
            logger.exception("Denial notifier failed")
        return False

    def sort_by_role(self, companions: Iterable[T], **kwargs: Any) -> list[T]:
        return sort_by_role(self.store.state, companions, **kwargs)
