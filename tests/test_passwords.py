"""Unit tests for auth/passwords.py -- bcrypt hashing and input policy.

Covers:
- hash() is salted: same secret, different verifiers, both verify
- verify() False on wrong secret, CorruptCredential on unusable verifiers
- secrets over bcrypt's 72-byte limit never match
- PasswordPolicy thresholds, check_email / check_name normalization
"""

import pytest

from auth.exceptions import CorruptCredential, InvalidInput
from auth.passwords import PasswordHasher, PasswordPolicy, check_email, check_name, normalize_email


class TestPasswordHasher:
    def test_hash_is_not_plaintext(self, hasher):
        verifier = hasher.hash("Secret123!")
        assert "Secret123!" not in verifier
        assert verifier.startswith("$2")

    def test_hash_is_salted(self, hasher):
        a = hasher.hash("Secret123!")
        b = hasher.hash("Secret123!")
        assert a != b
        assert hasher.verify("Secret123!", a)
        assert hasher.verify("Secret123!", b)

    def test_wrong_secret_returns_false(self, hasher):
        verifier = hasher.hash("Secret123!")
        assert hasher.verify("Secret123?", verifier) is False

    def test_rounds_are_embedded_in_verifier(self):
        verifier = PasswordHasher(rounds=5).hash("Secret123!")
        assert verifier.split("$")[2] == "05"

    @pytest.mark.parametrize("verifier", ["", "plaintext-password", "sha256:abcdef"])
    def test_non_bcrypt_verifier_is_corrupt(self, hasher, verifier):
        with pytest.raises(CorruptCredential):
            hasher.verify("Secret123!", verifier)

    def test_truncated_bcrypt_verifier_is_corrupt(self, hasher):
        """A row that looks like bcrypt but was cut short is a data fault, not a wrong password."""
        verifier = hasher.hash("Secret123!")
        with pytest.raises(CorruptCredential):
            hasher.verify("Secret123!", verifier[:20])

    def test_over_long_secret_never_matches(self, hasher):
        verifier = hasher.hash("A" * 72)
        assert hasher.verify("A" * 73, verifier) is False


class TestPasswordPolicy:
    def test_default_policy_accepts_typical_password(self):
        PasswordPolicy().check_password("Secret123!")

    def test_violations_lists_every_broken_rule(self):
        problems = PasswordPolicy().violations("abc")
        assert "at least 8 characters" in problems
        assert "an uppercase letter" in problems
        assert "a digit" in problems
        assert "a lowercase letter" not in problems

    def test_check_password_raises_invalid_input(self):
        with pytest.raises(InvalidInput, match="at least 8 characters"):
            PasswordPolicy().check_password("Ab1")

    def test_symbol_rule_is_opt_in(self):
        assert PasswordPolicy().violations("Secret123") == []
        assert PasswordPolicy(require_symbol=True).violations("Secret123") == ["a symbol"]
        assert PasswordPolicy(require_symbol=True).violations("Secret123!") == []

    def test_password_over_72_bytes_rejected(self):
        # 30 three-byte characters = 90 bytes, well under 72 characters.
        password = "Aa1" + "€" * 30
        assert "at most 72 bytes" in PasswordPolicy().violations(password)

    def test_relaxed_policy(self):
        policy = PasswordPolicy(min_length=4, require_upper=False, require_digit=False)
        policy.check_password("abcd")


class TestEmailAndName:
    def test_normalize_email_lowercases_and_trims(self):
        assert normalize_email("  A@X.Com ") == "a@x.com"

    def test_check_email_returns_normalized(self):
        assert check_email("A@X.com") == "a@x.com"

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "a b@x.com", "a@x.", "@x.com", "a@@x.com"])
    def test_check_email_rejects_malformed(self, email):
        with pytest.raises(InvalidInput):
            check_email(email)

    def test_check_email_rejects_overlong(self):
        with pytest.raises(InvalidInput):
            check_email("a" * 250 + "@x.com")

    def test_check_name_trims(self):
        assert check_name("  Ada  ") == "Ada"

    def test_check_name_rejects_blank(self):
        with pytest.raises(InvalidInput, match="empty"):
            check_name("   ")

    def test_check_name_rejects_overlong(self):
        with pytest.raises(InvalidInput):
            check_name("x" * 101)
