# Tests for auth/token_store.py
# Created: 2026-10-19

import json
import stat
import time

import pytest

from dida365_mcp.auth.token_store import TokenRecord, TokenStore, ValidationContext, sha256_hex


class TestTokenStore:
    def test_save_and_load_round_trip(self, store, make_record):
        record = make_record()
        store.save(record)

        loaded = store.load()
        assert loaded == record

    def test_load_nonexistent(self, store):
        assert store.load() is None

    def test_delete(self, store, make_record):
        store.save(make_record())
        assert store.delete() is True
        assert store.load() is None

    def test_delete_nonexistent(self, store):
        assert store.delete() is False

    def test_file_permissions(self, store, make_record):
        store.save(make_record())
        mode = store.path.stat().st_mode
        # Owner read+write only
        assert mode & stat.S_IRUSR
        assert mode & stat.S_IWUSR
        assert not (mode & stat.S_IRGRP)
        assert not (mode & stat.S_IROTH)

    def test_directory_permissions(self, store, make_record):
        store.save(make_record())
        mode = store.path.parent.stat().st_mode
        assert stat.S_IMODE(mode) == 0o700

    def test_existing_directory_is_tightened(self, store, make_record):
        store.path.parent.mkdir(parents=True)
        store.path.parent.chmod(0o755)

        store.save(make_record())

        assert stat.S_IMODE(store.path.parent.stat().st_mode) == 0o700

    def test_save_overwrites_without_leftovers(self, store, make_record):
        store.save(make_record(token="first"))
        store.save(make_record(token="second"))

        assert store.load().access_token == "second"
        assert [p.name for p in store.path.parent.iterdir()] == ["tokens.json"]

    def test_file_is_plain_json(self, store, make_record):
        record = make_record()
        store.save(record)
        data = json.loads(store.path.read_text())
        assert data["access_token"] == record.access_token
        assert data["client_id"] == "test-client"
        assert data["client_secret_hash"] == sha256_hex("test-secret")
        assert "test-secret" not in store.path.read_text()

    @pytest.mark.parametrize(
        "content",
        [
            b"not json at all",
            b"{\"access_token\": ",
            b"\xff\xfe\x00garbage",
            b"[]",
            b"\"just a string\"",
            b"{}",
            b"{\"expires_at\": 1234567890}",
            b"{\"access_token\": \"abc\"}",
            b"{\"access_token\": \"\", \"expires_at\": 1234567890}",
            b"{\"access_token\": \"abc\", \"expires_at\": \"soon\"}",
            b"{\"access_token\": \"abc\", \"expires_at\": NaN}",
            b"{\"access_token\": \"abc\", \"expires_at\": Infinity}",
            b"{\"access_token\": \"abc\", \"expires_at\": 2e9, \"created_at\": NaN}",
            b"{\"access_token\": {\"token\": \"abc\"}, \"expires_at\": 2e9}",
            b"{\"access_token\": 12345, \"expires_at\": 2e9}",
        ],
    )
    def test_corrupt_file_is_absent(self, store, content):
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(content)
        assert store.load() is None

    def test_unknown_fields_ignored(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(
            json.dumps({"access_token": "abc", "expires_at": 2e9, "refresh_token": "r"})
        )
        loaded = store.load()
        assert loaded is not None
        assert loaded.access_token == "abc"
        assert loaded.client_id == ""


class TestTokenRecord:
    def test_issued_stamps_context(self):
        ctx = ValidationContext.create("id", "secret", "international")
        before = time.time()
        record = TokenRecord.issued(ctx, access_token="a", expires_in=3600, scope="tasks:read")

        assert record.client_id == "id"
        assert record.client_secret_hash == sha256_hex("secret")
        assert record.region == "international"
        assert record.token_type == "Bearer"
        assert before + 3600 <= record.expires_at <= time.time() + 3600

    def test_is_expired_with_buffer(self):
        record = TokenRecord(access_token="a", expires_at=1000.0)
        assert record.is_expired(now=1000.0)
        assert not record.is_expired(now=999.0)
        assert record.is_expired(buffer_seconds=300, now=700.0)
        assert not record.is_expired(buffer_seconds=300, now=699.0)


class TestValidationContext:
    def test_matches_same_credentials(self, make_record):
        record = make_record()
        assert ValidationContext.create("test-client", "test-secret", "china").matches(record)

    @pytest.mark.parametrize(
        "ctx, reason",
        [
            (ValidationContext.create("other-client", "test-secret", "china"), "different OAuth client"),
            (ValidationContext.create("test-client", "rotated", "china"), "secret has changed"),
            (ValidationContext.create("test-client", "test-secret", "international"), "region"),
        ],
    )
    def test_mismatch(self, make_record, ctx, reason):
        record = make_record()
        assert not ctx.matches(record)
        assert reason in ctx.mismatch_reason(record)

    def test_legacy_token_without_metadata(self):
        ctx = ValidationContext.create("test-client", "test-secret", "china")
        legacy = TokenRecord(access_token="a", expires_at=2e9)
        assert not ctx.matches(legacy)
        assert "legacy" in ctx.mismatch_reason(legacy)

    def test_secret_not_kept(self):
        ctx = ValidationContext.create("id", "super-secret", "china")
        assert "super-secret" not in repr(ctx)
