"""Tests for the credential snapshot and its store."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from ecobee_bridge.models import CredentialSnapshot, PinGrant, TokenResponse
from ecobee_bridge.store import CredentialStore


class TestCredentialSnapshot:
    """Tests for CredentialSnapshot transitions."""

    def test_empty_snapshot_is_unauthorized(self) -> None:
        assert not CredentialSnapshot().is_authorized

    def test_pin_grant_clears_tokens(
        self, authorized_snapshot: CredentialSnapshot
    ) -> None:
        """Test that a new grant discards every token of the old one."""
        snapshot = authorized_snapshot.with_pin_grant(
            PinGrant(pin="zz99", code="auth-code-2")
        )
        assert snapshot.auth_code == "auth-code-2"
        assert snapshot.pin == "zz99"
        assert snapshot.access_token is None
        assert snapshot.refresh_token is None
        assert snapshot.token_type is None
        assert snapshot.device_state == authorized_snapshot.device_state

    def test_tokens_keep_refresh_token_when_not_rotated(self) -> None:
        snapshot = CredentialSnapshot(auth_code="c", refresh_token="refresh-1")
        snapshot = snapshot.with_tokens(
            TokenResponse(access_token="access-2", token_type="Bearer")
        )
        assert snapshot.refresh_token == "refresh-1"
        assert snapshot.is_authorized

    def test_tokens_rotate_refresh_token(self) -> None:
        snapshot = CredentialSnapshot(auth_code="c", refresh_token="refresh-1")
        snapshot = snapshot.with_tokens(
            TokenResponse("access-2", "Bearer", refresh_token="refresh-2")
        )
        assert snapshot.refresh_token == "refresh-2"

    def test_without_access_token(
        self, authorized_snapshot: CredentialSnapshot
    ) -> None:
        snapshot = authorized_snapshot.without_access_token()
        assert snapshot.access_token is None
        assert snapshot.auth_code == authorized_snapshot.auth_code
        assert snapshot.refresh_token == authorized_snapshot.refresh_token

    def test_without_auth_code(self, authorized_snapshot: CredentialSnapshot) -> None:
        snapshot = authorized_snapshot.without_auth_code()
        assert snapshot.auth_code is None
        assert snapshot.pin is None
        assert snapshot.refresh_token == "refresh-1"

    def test_device_state_rejects_unknown_values(self) -> None:
        with pytest.raises(ValueError, match="Invalid power state"):
            CredentialSnapshot().with_device_state("SunroomHeater", "dim")

    def test_device_state_returns_new_snapshot(
        self, authorized_snapshot: CredentialSnapshot
    ) -> None:
        updated = authorized_snapshot.with_device_state("SunroomHeater", "off")
        assert authorized_snapshot.device_state == {"SunroomHeater": "on"}
        assert updated.device_state == {"SunroomHeater": "off"}

    def test_to_dict_omits_absent_fields(self) -> None:
        assert CredentialSnapshot(auth_code="c").to_dict() == {
            "authCode": "c",
            "deviceState": {},
        }

    def test_from_dict_ignores_device_state_that_is_not_an_object(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that a scalar deviceState is dropped instead of failing the load."""
        snapshot = CredentialSnapshot.from_dict({"authCode": "a", "deviceState": "on"})
        assert snapshot.auth_code == "a"
        assert snapshot.device_state == {}
        assert "not an object" in caplog.text

    def test_from_dict_drops_invalid_entries(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that unknown keys and invalid states are dropped with a warning."""
        snapshot = CredentialSnapshot.from_dict(
            {
                "authCode": "c",
                "accessToken": "",
                "legacy": 1,
                "deviceState": {"SunroomHeater": "on", "Lamp": "maybe"},
            }
        )
        assert snapshot.auth_code == "c"
        assert snapshot.access_token is None
        assert snapshot.device_state == {"SunroomHeater": "on"}
        assert "legacy" in caplog.text
        assert "Lamp" in caplog.text


class TestCredentialStore:
    """Tests for CredentialStore."""

    def test_missing_file_is_created(
        self, store: CredentialStore, settings_path: Path
    ) -> None:
        """Test that the first run starts empty and creates the file."""
        snapshot = store.load()
        assert snapshot == CredentialSnapshot()
        assert json.loads(settings_path.read_text()) == {"deviceState": {}}

    def test_round_trip(
        self, store: CredentialStore, authorized_snapshot: CredentialSnapshot
    ) -> None:
        store.save(authorized_snapshot)
        assert store.load() == authorized_snapshot

    def test_on_disk_layout(
        self,
        store: CredentialStore,
        settings_path: Path,
        authorized_snapshot: CredentialSnapshot,
    ) -> None:
        """Test the key names of the persisted document."""
        store.save(authorized_snapshot)
        assert json.loads(settings_path.read_text()) == {
            "authCode": "auth-code-1",
            "ecobeePin": "ab12",
            "accessToken": "access-1",
            "refreshToken": "refresh-1",
            "tokenType": "Bearer",
            "deviceState": {"SunroomHeater": "on"},
        }

    def test_corrupt_file_is_reset(
        self, store: CredentialStore, settings_path: Path
    ) -> None:
        settings_path.write_text("{not json")
        assert store.load() == CredentialSnapshot()
        assert json.loads(settings_path.read_text()) == {"deviceState": {}}

    def test_invalid_utf8_is_reset(
        self, store: CredentialStore, settings_path: Path
    ) -> None:
        """Test that undecodable bytes are treated like a corrupt snapshot."""
        settings_path.write_bytes(b"\xff\xfe{bad")
        assert store.load() == CredentialSnapshot()
        assert json.loads(settings_path.read_text()) == {"deviceState": {}}

    def test_scalar_device_state_loads(
        self, store: CredentialStore, settings_path: Path
    ) -> None:
        settings_path.write_text('{"authCode": "a", "deviceState": "on"}')
        assert store.load() == CredentialSnapshot(auth_code="a")

    def test_non_object_is_reset(
        self, store: CredentialStore, settings_path: Path
    ) -> None:
        settings_path.write_text("[1, 2]")
        assert store.load() == CredentialSnapshot()

    def test_save_leaves_no_temp_files(
        self,
        store: CredentialStore,
        tmp_path: Path,
        authorized_snapshot: CredentialSnapshot,
    ) -> None:
        store.save(authorized_snapshot)
        store.save(authorized_snapshot.without_access_token())
        assert sorted(p.name for p in tmp_path.iterdir()) == ["settings.json"]

    def test_failed_replace_keeps_previous_file(
        self,
        store: CredentialStore,
        settings_path: Path,
        tmp_path: Path,
        authorized_snapshot: CredentialSnapshot,
    ) -> None:
        """Test that a failed write never leaves a partial snapshot behind."""
        store.save(authorized_snapshot)
        with (
            patch("ecobee_bridge.store.os.replace", side_effect=OSError("disk full")),
            pytest.raises(OSError, match="disk full"),
        ):
            store.save(authorized_snapshot.without_access_token())

        assert store.load() == authorized_snapshot
        assert sorted(p.name for p in tmp_path.iterdir()) == ["settings.json"]

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        store = CredentialStore(tmp_path / "state" / "settings.json")
        store.save(CredentialSnapshot(auth_code="c"))
        assert os.path.isfile(tmp_path / "state" / "settings.json")
