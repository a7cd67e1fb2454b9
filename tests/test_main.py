"""
Tests for the console front end, driven with scripted input.
"""

import io
import logging

import pytest

from credvault import audit, config
from credvault.main import ConsoleApp, build_parser, main
from credvault.session import SessionController
from credvault.storage import VaultFile

from .conftest import PASSPHRASE

STRONG = "S3cure!pass"


class Script:
    """Feeds queued answers to input() and getpass() and fails when exhausted."""

    def __init__(self, lines):
        self.lines = list(lines)
        self.prompts = []

    def __call__(self, prompt=""):
        self.prompts.append(prompt)
        if not self.lines:
            raise AssertionError(f"Unexpected prompt: {prompt!r}")
        return self.lines.pop(0)


def run_app(controller, answers, secrets, vault_file=None):
    out = io.StringIO()
    app = ConsoleApp(controller, vault_file, input_func=Script(answers),
                     password_func=Script(secrets), out=out, sleep=lambda s: None)
    code = app.run()
    return code, out.getvalue()


class TestSetup:

    def test_setup_then_exit(self, controller):
        code, output = run_app(controller, ["0"], [PASSPHRASE, PASSPHRASE])
        assert code == 0
        assert "Master password set successfully" in output
        assert controller.is_initialized
        assert not controller.is_unlocked

    def test_mismatch_is_retried_without_recursion(self, controller):
        secrets = ["a", "b"] * (config.MAX_SETUP_ATTEMPTS - 1) + [PASSPHRASE, PASSPHRASE]
        code, output = run_app(controller, ["0"], secrets)
        assert output.count("Passwords don't match") == config.MAX_SETUP_ATTEMPTS - 1
        assert controller.is_initialized

    def test_setup_gives_up_after_bounded_attempts(self, controller):
        secrets = ["a", "b"] * config.MAX_SETUP_ATTEMPTS
        code, output = run_app(controller, [], secrets)
        assert code == 0
        assert "Too many attempts" in output
        assert not controller.is_initialized

    def test_weak_master_needs_explicit_yes(self, controller):
        code, output = run_app(controller, ["n", "y", "0"], ["weak", "weak", "weak", "weak"])
        assert "Weak password. Needs:" in output
        assert controller.is_initialized


class TestLogin:

    @pytest.fixture
    def existing(self, unlocked):
        unlocked.store.add("GitHub", "octocat", STRONG)
        unlocked.lock()
        return unlocked

    def test_unlock_and_view(self, existing):
        code, output = run_app(existing, ["2", "GitHub", "0"], [PASSPHRASE])
        assert "Authentication successful" in output
        assert "Username:   octocat" in output
        assert f"Password:   {STRONG}" in output
        assert "Strength:   Strong password!" in output

    def test_wrong_passphrase_then_correct(self, existing):
        code, output = run_app(existing, ["0"], ["wrong", PASSPHRASE])
        assert "Incorrect password! Attempts left: 4" in output
        assert "Authentication successful" in output

    def test_lockout_waits_and_retries(self, existing, clock):
        slept = []

        def sleep(seconds):
            slept.append(seconds)
            clock.advance(seconds)

        out = io.StringIO()
        app = ConsoleApp(existing, input_func=Script(["0"]),
                         password_func=Script(["wrong", "wrong", PASSPHRASE, PASSPHRASE]),
                         out=out, sleep=sleep)
        app.run()
        assert slept == [2]
        assert "Too many failed attempts" in out.getvalue()

    def test_damaged_header_is_reported_not_raised(self, existing):
        existing.vault.salt = b"\x00" * 15
        code, output = run_app(existing, [], [PASSPHRASE])
        assert code == 0
        assert "Cannot unlock vault: salt must be exactly 16 bytes" in output
        assert not existing.is_unlocked

    def test_max_attempts_exits(self, existing):
        existing._backoff_after = 100
        code, output = run_app(existing, [], ["wrong"] * config.MAX_LOGIN_ATTEMPTS)
        assert "Maximum login attempts reached" in output
        assert not existing.is_unlocked


class TestMenu:

    def test_add_list_search_delete(self, unlocked):
        answers = [
            "1", "GitHub", "octocat",
            "1", "GitLab", "tanuki",
            "1", "Gmail", "me",
            "5",
            "6", "git",
            "4", "Gmail",
            "5",
            "0",
        ]
        code, output = run_app(unlocked, answers, [STRONG, STRONG, STRONG])
        assert "Password for 'GitHub' saved successfully" in output
        assert "Total: 3 password(s)" in output
        assert "Found 2 match(es):" in output
        assert "Password for 'Gmail' deleted successfully" in output
        assert "Total: 2 password(s)" in output

    def test_duplicate_add_points_to_update(self, unlocked):
        unlocked.store.add("GitHub", "octocat", STRONG)
        code, output = run_app(unlocked, ["1", "GitHub", "0"], [])
        assert "already exists. Use Update instead." in output

    def test_weak_secret_declined_is_not_saved(self, unlocked):
        code, output = run_app(unlocked, ["1", "Gmail", "me", "n", "0"], ["abc"])
        assert "Password not saved." in output
        assert "Gmail" not in unlocked.vault.records

    def test_weak_secret_accepted(self, unlocked):
        code, output = run_app(unlocked, ["1", "Gmail", "me", "y", "0"], ["abc"])
        assert "saved successfully" in output

    def test_blank_password_is_generated(self, unlocked):
        code, output = run_app(unlocked, ["1", "Gmail", "me", "0"], [""])
        assert "Generated a random password." in output
        unlocked.lock()
        unlocked.unlock(PASSPHRASE)
        assert len(unlocked.store.get("Gmail").secret) == config.PASSWORD_GENERATOR_DEFAULT_LENGTH

    def test_update_keeps_username_when_blank(self, unlocked):
        unlocked.store.add("GitHub", "octocat", STRONG)
        code, output = run_app(unlocked, ["3", "GitHub", "", "0"], ["N3w!secret"])
        assert "updated successfully" in output
        unlocked.lock()
        unlocked.unlock(PASSPHRASE)
        record = unlocked.store.get("GitHub")
        assert record.username == "octocat"
        assert record.secret == "N3w!secret"

    def test_update_missing(self, unlocked):
        code, output = run_app(unlocked, ["3", "Nope", "0"], [])
        assert "No password found for 'Nope'" in output

    def test_not_found_is_reported(self, unlocked):
        code, output = run_app(unlocked, ["2", "Nope", "4", "Nope", "0"], [])
        assert output.count("No credential found for 'Nope'") == 2

    def test_integrity_failure_is_a_security_alert(self, unlocked, caplog):
        unlocked.store.add("GitHub", "octocat", STRONG)
        unlocked.vault.records["GitHub"].ciphertext[0] ^= 0x01
        with caplog.at_level(logging.INFO, logger="credvault.audit"):
            code, output = run_app(unlocked, ["2", "GitHub", "5", "0"], [])
        assert "SECURITY ALERT" in output
        assert "Total: 1 password(s)" in output
        assert "event=integrity_failure" in caplog.text

    def test_invalid_choice(self, unlocked):
        code, output = run_app(unlocked, ["x", "0"], [])
        assert "Invalid choice" in output

    def test_generate_password(self, unlocked):
        code, output = run_app(unlocked, ["7", "20", "y", "7", "abc", "0"], [])
        assert "Generate Password" in output
        assert "invalid literal" in output

    def test_lock_then_unlock_again(self, unlocked):
        code, output = run_app(unlocked, ["9", "5", "0"], [PASSPHRASE])
        assert "Vault locked." in output
        assert "No passwords stored yet." in output

    def test_change_master_password(self, unlocked):
        new = "Brand-New-Pass-9"
        code, output = run_app(unlocked, ["8", "0"], [PASSPHRASE, new, new])
        assert "Master password changed." in output
        assert unlocked.unlock(new) is True

    def test_mutations_are_saved(self, unlocked, tmp_path, fast_params):
        vault_file = VaultFile(str(tmp_path / "vault.cvf"))
        run_app(unlocked, ["1", "GitHub", "octocat", "0"], [STRONG], vault_file=vault_file)
        session = SessionController(vault_file.load(), kdf_params=fast_params)
        assert session.unlock(PASSPHRASE)
        assert session.store.list() == ["GitHub"]


class TestEntryPoint:

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.vault.endswith(config.DEFAULT_VAULT_FILE)
        assert args.memory is False

    def test_main_rejects_corrupt_vault_file(self, tmp_path, capsys):
        handlers = list(audit.get_audit_logger().handlers)
        path = tmp_path / "vault.cvf"
        path.write_bytes(b"garbage!")
        assert main(["--vault", str(path), "--audit-log", str(tmp_path / "audit.log")]) == 1
        assert "Cannot open" in capsys.readouterr().err
        for handler in list(audit.get_audit_logger().handlers):
            if handler not in handlers:
                audit.get_audit_logger().removeHandler(handler)
                handler.close()
