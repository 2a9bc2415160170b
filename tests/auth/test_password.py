"""Tests for password hashing and the strength policy."""

import pytest

from knowva.auth.password import (
    check_needs_rehash,
    check_password_strength,
    hash_password,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "SecureP@ss1"
        hashed = hash_password(password)
        assert verify_password(password, hashed) is True

    def test_wrong_password_rejected(self):
        hashed = hash_password("CorrectP@ss1")
        assert verify_password("WrongP@ss1", hashed) is False

    def test_hash_is_salted(self):
        assert hash_password("SameP@ss1") != hash_password("SameP@ss1")

    def test_hash_is_argon2id(self):
        hashed = hash_password("TestP@ss1")
        assert hashed.startswith("$argon2id$")

    def test_malformed_hash_returns_false(self):
        assert verify_password("TestP@ss1", "not-a-hash") is False

    def test_empty_hash_returns_false(self):
        assert verify_password("TestP@ss1", "") is False

    def test_check_needs_rehash(self):
        hashed = hash_password("TestP@ss1")
        assert check_needs_rehash(hashed) is False


class TestPasswordStrength:
    def test_strong_password_has_no_violations(self):
        assert check_password_strength("Abcdef1!") == []

    def test_lowercase_only_reports_each_missing_class(self):
        violations = check_password_strength("abcdefgh")
        assert violations == [
            "Password must contain at least one number",
            "Password must contain at least one uppercase letter",
            "Password must contain at least one special character",
        ]

    def test_short_password_reports_all_rules(self):
        violations = check_password_strength("short")
        assert "Password must be at least 8 characters long" in violations
        assert "Password must contain at least one number" in violations
        assert "Password must contain at least one uppercase letter" in violations
        assert "Password must contain at least one special character" in violations
        assert "Password must contain at least one lowercase letter" not in violations
        assert len(violations) == 4

    def test_digit_present_is_not_reported(self):
        violations = check_password_strength("short1")
        assert "Password must contain at least one number" not in violations

    def test_too_long_password_rejected(self):
        violations = check_password_strength("Aa1!" + "a" * 125)
        assert violations == ["Password must be less than 128 characters long"]

    def test_boundary_lengths_accepted(self):
        assert check_password_strength("Aa1!aaaa") == []
        assert check_password_strength("Aa1!" + "a" * 124) == []

    def test_empty_password(self):
        assert len(check_password_strength("")) == 5

    @pytest.mark.parametrize("symbol", list("!@#$%^&*()_+-=[]{}|;:,.<>?"))
    def test_every_listed_symbol_counts(self, symbol):
        assert check_password_strength(f"Abcdefg1{symbol}") == []

    def test_unlisted_symbol_does_not_count(self):
        assert check_password_strength("Abcdefg1~") == ["Password must contain at least one special character"]

    def test_custom_rules(self):
        rules = [(lambda p: "knowva" not in p.lower(), "Password must not contain the product name")]
        assert check_password_strength("Knowva123!", rules) == ["Password must not contain the product name"]

    def test_empty_rule_list_accepts_anything(self):
        assert check_password_strength("x", rules=[]) == []
