import json

from healthyaura.domain.schemas.auth import Role, UserProfile
from healthyaura.infrastructure.storage import JsonFileStorage, MemoryStorage
from healthyaura.infrastructure.token_store import TokenStore


class TestJsonFileStorage:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        JsonFileStorage(path).set("token", "abc")

        storage = JsonFileStorage(path)
        assert storage.get("token") == "abc"
        storage.remove("token")
        storage.remove("token")
        assert JsonFileStorage(path).get("token") is None

    def test_unreadable_file_reads_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{broken", encoding="utf-8")

        storage = JsonFileStorage(path)
        assert storage.get("token") is None
        storage.set("token", "abc")
        assert json.loads(path.read_text(encoding="utf-8")) == {"token": "abc"}

    def test_non_object_file_reads_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("[1, 2]", encoding="utf-8")

        assert JsonFileStorage(path).get("token") is None


class TestTokenStore:
    def test_profile_roundtrip_uses_camel_case(self, settings):
        storage = MemoryStorage()
        store = TokenStore(storage, settings)
        store.save_token("abc")
        store.save_profile(UserProfile(username="alice", role=Role.ADMIN, token="abc", total_points=7))

        raw = json.loads(storage.get(settings.USER_STORAGE_KEY))
        assert raw["totalPoints"] == 7
        loaded = store.load_profile()
        assert loaded.username == "alice"
        assert loaded.is_admin
        assert store.load_token() == "abc"

    def test_clear_removes_both_keys(self, settings):
        storage = MemoryStorage({settings.TOKEN_STORAGE_KEY: "abc", settings.USER_STORAGE_KEY: "{}", "other": "x"})
        TokenStore(storage, settings).clear()

        assert storage.keys() == ["other"]

    def test_wrong_shape_is_discarded(self, settings):
        storage = MemoryStorage({settings.USER_STORAGE_KEY: json.dumps(["alice"])})
        store = TokenStore(storage, settings)

        assert store.load_profile() is None
        assert not store.has_profile()

    def test_negative_points_clamped(self, settings):
        storage = MemoryStorage({settings.USER_STORAGE_KEY: json.dumps({"username": "alice", "totalPoints": -5})})

        assert TokenStore(storage, settings).load_profile().total_points == 0

    def test_role_prefix_normalized(self, settings):
        storage = MemoryStorage({settings.USER_STORAGE_KEY: json.dumps({"username": "root", "role": "ROLE_ADMIN"})})

        assert TokenStore(storage, settings).load_profile().role is Role.ADMIN
