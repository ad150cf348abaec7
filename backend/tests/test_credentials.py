import pytest

from chant_tracker.credentials import CredentialStore
from chant_tracker.errors import NotFound, Unauthorized, ValidationError


@pytest.fixture
def store(fake_db):
    return CredentialStore(fake_db, rounds=4)


class TestRegister:
    def test_creates_user_and_hides_hash(self, store, fake_db):
        user = store.register("+15550001", "2468", "Radha")
        assert user.phone == "+15550001"
        assert user.display_name == "Radha"
        assert "credential_hash" not in user.public()

        row = fake_db.rows("users")[0]
        assert row["credential_hash"] and row["credential_hash"] != "2468"

    @pytest.mark.parametrize("phone, pin", [
        (None, "2468"), ("", "2468"), ("   ", "2468"), ("+15550001", None), ("+15550001", ""),
    ])
    def test_missing_fields_rejected(self, store, phone, pin):
        with pytest.raises(ValidationError):
            store.register(phone, pin)

    @pytest.mark.parametrize("phone, pin", [
        ("not-a-phone", "2468"), ("+15550001", "12ab"), ("+15550001", "12"),
    ])
    def test_malformed_fields_rejected(self, store, phone, pin):
        with pytest.raises(ValidationError):
            store.register(phone, pin)

    def test_reregister_updates_hash_and_keeps_name(self, store, fake_db):
        first = store.register("+15550001", "2468", "Radha")
        old_hash = fake_db.rows("users")[0]["credential_hash"]

        second = store.register("+15550001", "1357")

        rows = fake_db.rows("users")
        assert len(rows) == 1
        assert rows[0]["credential_hash"] != old_hash
        assert second.user_id == first.user_id
        assert second.display_name == "Radha"

    def test_reregister_with_new_name_replaces_it(self, store):
        store.register("+15550001", "2468", "Radha")
        assert store.register("+15550001", "2468", "Krishna").display_name == "Krishna"


class TestVerify:
    def test_only_last_registered_pin_verifies(self, store):
        store.register("+15550001", "2468")
        store.register("+15550001", "1357")

        assert store.verify("+15550001", "1357").phone == "+15550001"
        for pin in ["2468", "1111", "13570"]:
            with pytest.raises(Unauthorized):
                store.verify("+15550001", pin)

    def test_overlong_pin_is_unauthorized(self, store):
        store.register("+15550001", "2468")
        for pin in ["1" * 80, "2468" * 20, "24680000x"]:
            with pytest.raises(Unauthorized):
                store.verify("+15550001", pin)

    def test_unknown_phone_is_not_found(self, store):
        with pytest.raises(NotFound):
            store.verify("+15559999", "2468")

    def test_user_without_pin_cannot_pin_login(self, store, fake_db):
        fake_db.table("users").insert({"phone": "+15550002"}).execute()
        with pytest.raises(Unauthorized):
            store.verify("+15550002", "2468")

    def test_missing_pin_is_validation_error(self, store):
        with pytest.raises(ValidationError):
            store.verify("+15550001", None)
