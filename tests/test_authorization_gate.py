"""Tests for the authorization gate — exclusivity of callback and denial notice."""

import random
from unittest.mock import MagicMock

import pytest

from companion_access.core.config import ConfigurationError, Platform, settings
from companion_access.schemas.access import Companion, PermissionKey
from companion_access.services.authorization_gate import (
    DENIAL_ALERT_TITLE,
    AuthorizationGate,
    platform_notifier,
)

from tests.conftest import grant


@pytest.fixture()
def notifier():
    return MagicMock()


@pytest.fixture()
def gate(store, notifier):
    return AuthorizationGate(store, notifier=notifier)


class TestAttempt:
    def test_allowed_runs_callback_only(self, gate, store, notifier):
        store.apply_access_snapshot([grant("1", "VIEWER", {"canViewVet": True})])
        on_authorized = MagicMock()

        assert gate.attempt("1", "canViewVet", "Vet Records", on_authorized) is True
        on_authorized.assert_called_once_with()
        notifier.assert_not_called()

    def test_denied_notifies_only(self, gate, store, notifier):
        store.apply_access_snapshot([grant("1", "VIEWER", {"canViewVet": False})])
        on_authorized = MagicMock()

        assert gate.attempt("1", "canViewVet", "Vet Records", on_authorized) is False
        on_authorized.assert_not_called()
        notifier.assert_called_once_with(
            "You don't have access to Vet Records. Ask the primary parent to enable it."
        )

    def test_no_permission_required_selects(self, gate, notifier):
        on_authorized = MagicMock()
        assert gate.attempt("1", None, None, on_authorized) is True
        on_authorized.assert_called_once()
        notifier.assert_not_called()

    def test_missing_companion_is_denied(self, gate, notifier):
        on_authorized = MagicMock()
        assert gate.attempt(None, None, None, on_authorized) is False
        on_authorized.assert_not_called()
        notifier.assert_called_once()

    def test_label_defaults_to_known_permission_name(self, gate, notifier):
        gate.attempt("1", PermissionKey.COMPANION_PROFILE, None, MagicMock())
        assert "access to companion profile." in notifier.call_args.args[0]

    def test_label_defaults_to_generic_text(self, store, notifier):
        gate = AuthorizationGate(store, notifier=notifier, default_label="this feature")
        gate.attempt("1", "somethingNew", None, MagicMock())
        assert "access to this feature." in notifier.call_args.args[0]

    def test_custom_template(self, store, notifier):
        gate = AuthorizationGate(store, notifier=notifier, denial_template="No {label} for you")
        gate.attempt("1", "canEdit", "editing", MagicMock())
        notifier.assert_called_once_with("No editing for you")

    def test_malformed_input_is_a_denial(self, gate, store, notifier):
        store.apply_access_snapshot([grant("1", "VIEWER", {"canEdit": True})])
        on_authorized = MagicMock()
        assert gate.attempt("1", ["canEdit"], "editing", on_authorized) is False
        on_authorized.assert_not_called()
        notifier.assert_called_once()

    @pytest.mark.parametrize("companion_id, key", [
        ("1", ["canEdit"]),
        (["1"], "canEdit"),
        ({"id": "1"}, None),
        ("1", 42),
    ])
    def test_malformed_input_without_label_notifies_once(self, gate, store, notifier, companion_id, key):
        store.apply_access_snapshot([grant("1", "PRIMARY_OWNER")])
        on_authorized = MagicMock()

        assert gate.attempt(companion_id, key, None, on_authorized) is False
        on_authorized.assert_not_called()
        notifier.assert_called_once_with(
            "You don't have access to this feature. Ask the primary parent to enable it."
        )

    @pytest.mark.parametrize("template", ["{x} {label}", "Access denied.", "{label:d}", "{}"])
    def test_unusable_template_rejected_up_front(self, store, template):
        with pytest.raises(ConfigurationError):
            AuthorizationGate(store, denial_template=template)

    def test_failing_notifier_does_not_raise(self, store):
        gate = AuthorizationGate(store, notifier=MagicMock(side_effect=RuntimeError("no UI")))
        assert gate.attempt("1", "canEdit", "editing", MagicMock()) is False

    def test_exclusivity_randomized(self, store):
        """Exactly one of callback / notice fires, whatever authorize decides."""
        rng = random.Random(42)
        roles = ["PRIMARY_OWNER", "COPARENT", "VIEWER", "UNKNOWN", None]
        keys = ["canEdit", "canViewVet", "tasks", None]

        for _ in range(200):
            store.reset()
            if rng.random() < 0.9:
                store.set_caller("parent-1")
            store.apply_access_snapshot([
                grant(cid, rng.choice(roles), {k: rng.choice([True, False]) for k in keys if k})
                for cid in ("1", "2", None)
                if rng.random() < 0.7
            ])
            notifier = MagicMock()
            on_authorized = MagicMock()
            gate = AuthorizationGate(store, notifier=notifier)
            companion_id = rng.choice(["1", "2", "3", None])
            key = rng.choice(keys)

            expected = gate.authorize(companion_id, key)
            result = gate.attempt(companion_id, key, "label", on_authorized)

            assert result is expected
            assert on_authorized.call_count + notifier.call_count == 1
            assert on_authorized.call_count == int(expected)


class TestSortByRole:
    def test_delegates_to_ranking(self, gate, store):
        store.apply_access_snapshot([grant("1", "VIEWER"), grant("2", "PRIMARY_OWNER"), grant("3", "COPARENT")])
        companions = [Companion(id="1"), Companion(id="2"), Companion(id="3")]
        assert [c.id for c in gate.sort_by_role(companions)] == ["2", "3", "1"]


class TestPlatformNotifier:
    MESSAGE = "You don't have access to Photos. Ask the primary parent to enable it."

    def test_android_shows_toast(self):
        toast, alert = MagicMock(), MagicMock()
        platform_notifier(toast, alert, Platform.ANDROID)(self.MESSAGE)
        toast.assert_called_once_with(self.MESSAGE)
        alert.assert_not_called()

    @pytest.mark.parametrize("platform", [Platform.IOS, Platform.WEB])
    def test_other_platforms_show_alert(self, platform):
        toast, alert = MagicMock(), MagicMock()
        platform_notifier(toast, alert, platform)(self.MESSAGE)
        alert.assert_called_once_with(DENIAL_ALERT_TITLE, self.MESSAGE)
        toast.assert_not_called()

    def test_defaults_to_configured_platform(self, monkeypatch):
        monkeypatch.setattr(settings, "platform", Platform.ANDROID)
        toast, alert = MagicMock(), MagicMock()
        platform_notifier(toast, alert)(self.MESSAGE)
        toast.assert_called_once_with(self.MESSAGE)
        alert.assert_not_called()
