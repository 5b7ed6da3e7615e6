"""Tests for the override store and its session backends."""
import pytest

from snapshot_restore.core.exceptions import SessionError
from snapshot_restore.domain.interfaces import SessionBackend
from snapshot_restore.infrastructure.session import MemorySessionBackend, YamlSessionBackend
from snapshot_restore.services import overrides as keys
from snapshot_restore.services.overrides import OverrideStore


class BrokenBackend(SessionBackend):

    def load(self):
        raise SessionError("session store offline")

    def save(self, values):
        raise SessionError("session store offline")

    def clear(self):
        raise SessionError("session store offline")


class TestOverrideStore:

    def test_get_falls_back_when_unset(self):
        store = OverrideStore(MemorySessionBackend())
        assert store.get(keys.DB_NAME, "from_file") == "from_file"

    def test_set_then_get(self):
        store = OverrideStore(MemorySessionBackend())
        assert store.set(keys.DB_NAME, "overridden")
        assert store.get(keys.DB_NAME, "from_file") == "overridden"
        assert store.has_overrides()

    def test_empty_value_counts_as_unset(self):
        store = OverrideStore(MemorySessionBackend({keys.DB_HOST: ""}))
        assert store.get(keys.DB_HOST, "localhost") == "localhost"

    def test_drop(self):
        store = OverrideStore(MemorySessionBackend({keys.DB_USER: "admin"}))
        assert store.drop(keys.DB_USER)
        assert store.get(keys.DB_USER) is None

    def test_values_survive_a_new_store_on_the_same_backend(self):
        backend = MemorySessionBackend()
        OverrideStore(backend).set(keys.TARGET_URL, "http://new.example.com/")
        assert OverrideStore(backend).get(keys.TARGET_URL) == "http://new.example.com/"

    def test_clear(self):
        backend = MemorySessionBackend({keys.DB_NAME: "x"})
        store = OverrideStore(backend)
        assert store.clear()
        assert not store.has_overrides()
        assert backend.load() == {}

    def test_without_backend_overrides_are_disabled(self):
        store = OverrideStore()
        assert not store.can_override()
        assert not store.set(keys.DB_NAME, "ignored")
        assert store.get(keys.DB_NAME, "fallback") == "fallback"

    def test_unavailable_backend_disables_overrides(self):
        store = OverrideStore(BrokenBackend())
        assert not store.can_override()
        assert store.get(keys.DB_NAME, "fallback") == "fallback"


class TestYamlSessionBackend:

    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "session.yaml"
        OverrideStore(YamlSessionBackend(path)).set(keys.DB_PASSWORD, "p@ss'word")

        assert path.exists()
        assert oct(path.stat().st_mode & 0o777) == oct(0o600)
        assert OverrideStore(YamlSessionBackend(path)).get(keys.DB_PASSWORD) == "p@ss'word"

    def test_missing_file_is_empty(self, tmp_path):
        assert YamlSessionBackend(tmp_path / "none.yaml").load() == {}

    def test_invalid_file_raises(self, tmp_path):
        path = tmp_path / "session.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(SessionError):
            YamlSessionBackend(path).load()

    def test_clear_removes_file(self, tmp_path):
        path = tmp_path / "session.yaml"
        backend = YamlSessionBackend(path)
        backend.save({"a": 1})
        backend.clear()
        assert not path.exists()
        backend.clear()
