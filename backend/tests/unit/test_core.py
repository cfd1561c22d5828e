"""
Unit tests for core infrastructure: caches, database helpers, API key encryption
and security helpers.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from app.core.cache import (
    TTLCache,
    invalidate_provider_cache,
    invalidate_shared_models_cache,
    model_cache,
    shared_models_cache,
)
from app.core.database import async_database_url, pagination_info
from app.core.exceptions import DecryptionError
from app.core.security import (
    create_access_token,
    create_email_verification_token,
    create_signature,
    get_password_hash,
    mask_sensitive_data,
    validate_password_strength,
    verify_password,
    verify_signature,
    verify_token,
)
from app.utils.encryption import _derive_key, decrypt, encrypt, hash_api_key, mask_api_key


class TestTTLCache:
    """Tests for the in-process TTL cache."""

    def test_get_returns_stored_value(self):
        cache = TTLCache("test", default_ttl=60)
        cache.set("key", {"value": 1})

        assert cache.get("key") == {"value": 1}
        assert cache.get("missing") is None

    def test_expired_entry_is_dropped(self):
        cache = TTLCache("test", default_ttl=60)
        cache.set("key", "value", ttl=-1)

        assert cache.get("key") is None
        assert len(cache) == 0

    def test_cleanup_counts_expired_entries(self):
        cache = TTLCache("test", default_ttl=60)
        cache.set("fresh", 1)
        cache.set("stale-1", 2, ttl=-1)
        cache.set("stale-2", 3, ttl=-1)

        assert cache.cleanup() == 2
        assert cache.get("fresh") == 1

    def test_full_cache_evicts_least_recently_read(self):
        cache = TTLCache("test", default_ttl=10**9, max_size=2)
        with patch("app.core.cache.time.monotonic", side_effect=[1.0, 2.0, 3.0, 4.0, 5.0]):
            cache.set("a", 1)
            cache.set("b", 2)
            cache.get("a")
            cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_delete_pattern(self):
        cache = TTLCache("test")
        cache.set("models:openai:abc", [])
        cache.set("models:openai:def", [])
        cache.set("models:gemini:abc", [])

        assert cache.delete_pattern("models:openai:*") == 2
        assert cache.get("models:gemini:abc") == []

    def test_stats(self):
        cache = TTLCache("test", max_size=4)
        cache.set("a", 1)

        stats = cache.stats()
        assert stats == {"name": "test", "size": 1, "maxSize": 4, "utilization": 25}

    def test_invalidation_helpers(self):
        model_cache.set("models:openai:k1", ["gpt-4o"])
        model_cache.set("models:gemini:k1", ["gemini-1.5-pro"])
        shared_models_cache.set("shared-models-all", [])

        invalidate_provider_cache("openai")
        assert model_cache.get("models:openai:k1") is None
        assert model_cache.get("models:gemini:k1") == ["gemini-1.5-pro"]

        invalidate_shared_models_cache()
        assert model_cache.get("models:gemini:k1") is None
        assert shared_models_cache.get("shared-models-all") is None


class TestDatabaseHelpers:

    @pytest.mark.parametrize("url, expected", [
        ("postgres://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
        ("postgresql://u:p@db/app", "postgresql+asyncpg://u:p@db/app"),
        ("sqlite:///./local.db", "sqlite+aiosqlite:///./local.db"),
        ("sqlite+aiosqlite:///./local.db", "sqlite+aiosqlite:///./local.db"),
    ])
    def test_async_driver_rewrite(self, url, expected):
        assert async_database_url(url) == expected

    def test_pagination_info(self):
        assert pagination_info(2, 20, 41) == {"page": 2, "limit": 20, "totalCount": 41, "totalPages": 3}
        assert pagination_info(1, 50, 0)["totalPages"] == 0


class TestEncryption:
    """Tests for stored API key encryption."""

    def test_encrypt_produces_iv_and_ciphertext(self):
        encrypted = encrypt("sk-test-key-1234")

        iv_hex, ciphertext_hex = encrypted.split(":")
        assert len(iv_hex) == 32
        assert len(ciphertext_hex) % 32 == 0
        assert decrypt(encrypted) == "sk-test-key-1234"

    def test_same_plaintext_uses_fresh_iv(self):
        assert encrypt("same") != encrypt("same")

    @pytest.mark.parametrize("value", ["", "no-separator", "abcd:00ff", "zz" * 16 + ":00"])
    def test_decrypt_rejects_malformed_values(self, value):
        with pytest.raises(DecryptionError):
            decrypt(value)

    def test_derive_key_accepts_hex_and_plain_strings(self):
        hex_key = "ab" * 32
        assert _derive_key(hex_key) == bytes.fromhex(hex_key)

        short = _derive_key("short-key")
        assert len(short) == 32
        assert short.startswith(b"short-key")
        assert short.endswith(b"0")

    def test_mask_api_key(self):
        assert mask_api_key("sk-proj-1234567890abcd") == "sk-proj-...abcd"
        assert mask_api_key("") == ""

    def test_hash_api_key_is_short_and_stable(self):
        assert hash_api_key("key") == hash_api_key("key")
        assert len(hash_api_key("key")) == 16


class TestSecurity:
    """Tests for password, token and signature helpers."""

    def test_password_hash_round_trip(self):
        hashed = get_password_hash("TestPassword123!")

        assert hashed != "TestPassword123!"
        assert verify_password("TestPassword123!", hashed)
        assert not verify_password("WrongPassword123!", hashed)

    @pytest.mark.parametrize(
        "password,message",
        [
            ("Ab1!", "Password must be at least 8 characters"),
            ("lowercase1!", "Password must contain at least one uppercase letter"),
            ("UPPERCASE1!", "Password must contain at least one lowercase letter"),
            ("NoNumbers!", "Password must contain at least one number"),
            ("NoSpecial123", "Password must contain at least one special character"),
            ("Valid123!", None),
        ],
    )
    def test_password_strength_rules(self, password, message):
        assert validate_password_strength(password) == message

    def test_access_token_round_trip(self):
        token = create_access_token(data={"sub": "user-1"})

        payload = verify_token(token, "access")
        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_token_type_must_match(self):
        token = create_email_verification_token("user-1", "user@example.com")

        assert verify_token(token, "access") is None
        assert verify_token(token, "email_verification")["email"] == "user@example.com"

    def test_expired_token_is_rejected(self):
        token = create_access_token(data={"sub": "user-1"}, expires_delta=timedelta(seconds=-10))
        assert verify_token(token) is None

    def test_garbage_token_is_rejected(self):
        assert verify_token("not-a-jwt") is None

    def test_signature_verification(self):
        body = b'{"event": {"type": "charge:confirmed"}}'
        signature = create_signature(body, "webhook-secret")

        assert verify_signature(body, signature, "webhook-secret")
        assert not verify_signature(body, signature, "other-secret")
        assert not verify_signature(body + b" ", signature, "webhook-secret")

    def test_mask_sensitive_data(self):
        assert mask_sensitive_data("1234567890") == "******7890"

    def test_mask_sensitive_email(self):
        assert mask_sensitive_data("jane@example.com") == "j**e@example.com"
