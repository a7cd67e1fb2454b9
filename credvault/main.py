"""
Console entry point for the credential vault.

Runs the interactive menu on top of the session controller. Every vault
error is reported and the menu continues; nothing here prints or logs a
master passphrase.
"""

import os
import sys
import time
import getpass
import logging
import argparse
from typing import Callable, Optional, TextIO

from . import config
from . import audit
from .errors import IntegrityError, LockedOut, VaultError, VaultFormatError, WeakSecret
from .session import SessionController
from .storage import VaultFile
from .strength import describe_strength, generate_password

logger = logging.getLogger(__name__)

MENU = """\
+------------------------------------+
|   CREDENTIAL VAULT - Main Menu     |
+------------------------------------+
| 1. Add Password                    |
| 2. View Password                   |
| 3. Update Password                 |
| 4. Delete Password                 |
| 5. List All Services               |
| 6. Search Passwords                |
| 7. Generate Password               |
| 8. Change Master Password          |
| 9. Lock Vault                      |
| 0. Exit                            |
+------------------------------------+"""


class ConsoleApp:
    """Interactive menu loop for one vault."""

    def __init__(self, controller: SessionController,
                 vault_file: Optional[VaultFile] = None,
                 input_func: Callable[[str], str] = input,
                 password_func: Callable[[str], str] = getpass.getpass,
                 out: Optional[TextIO] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.controller = controller
        self.vault_file = vault_file
        self._input = input_func
        self._password = password_func
        self.out = out or sys.stdout
        self._sleep = sleep
        self._actions = {
            "1": self.add_password,
            "2": self.view_password,
            "3": self.update_password,
            "4": self.delete_password,
            "5": self.list_all,
            "6": self.search_passwords,
            "7": self.show_generated_password,
            "8": self.change_master_password,
        }

    # -- io helpers -------------------------------------------------------

    def say(self, message: str = "") -> None:
        print(message, file=self.out)

    def ask(self, prompt: str) -> str:
        return self._input(prompt).strip()

    def ask_secret(self, prompt: str) -> str:
        return self._password(prompt)

    def confirm(self, prompt: str) -> bool:
        return self.ask(prompt).lower() == "y"

    def _save(self) -> None:
        if self.vault_file is None or self.controller.vault is None:
            return
        try:
            self.vault_file.save(self.controller.vault)
        except OSError as e:
            self.say(f"✗ Could not save vault: {e}")

    # -- state machine ----------------------------------------------------

    def run(self) -> int:
        """Run until the user exits. Returns a process exit code."""
        self.say(f"\n=== {config.APP_TITLE} ===\n")
        state = config.STATE_STARTUP
        while state != config.STATE_EXIT:
            if state == config.STATE_STARTUP:
                if self.controller.is_unlocked:
                    state = config.STATE_MENU
                elif self.controller.is_initialized:
                    state = config.STATE_LOGIN
                else:
                    state = config.STATE_MENU if self.setup_master_password() else config.STATE_EXIT
            elif state == config.STATE_LOGIN:
                state = config.STATE_MENU if self.authenticate() else config.STATE_EXIT
            elif state == config.STATE_MENU:
                state = self.menu_loop()

        self.controller.lock()
        self.say("\nThank you for using the credential vault. Stay secure!\n")
        return 0

    def setup_master_password(self) -> bool:
        """First-run setup, retried a bounded number of times."""
        self.say("=== Master Password Setup ===")
        self.say("This password will protect all your stored passwords.")
        for attempt in range(1, config.MAX_SETUP_ATTEMPTS + 1):
            passphrase = self.ask_secret("Create master password: ")
            confirm = self.ask_secret("Confirm master password: ")
            if passphrase != confirm:
                self.say("✗ Passwords don't match. Please try again.\n")
                continue
            try:
                self.controller.create(passphrase, confirm)
            except WeakSecret as e:
                self.say(str(e))
                if not self.confirm("Use it anyway? (y/n): "):
                    continue
                self.controller.create(passphrase, confirm, allow_weak=True)
            self._save()
            self.say("✓ Master password set successfully!\n")
            return True
        self.say("✗ Too many attempts. Exiting.")
        return False

    def authenticate(self) -> bool:
        """Unlock prompt with a bounded number of wrong passphrases."""
        self.say("=== Authentication Required ===")
        failures = 0
        while failures < config.MAX_LOGIN_ATTEMPTS:
            passphrase = self.ask_secret("Enter master password: ")
            try:
                if self.controller.unlock(passphrase):
                    self.say("✓ Authentication successful!\n")
                    return True
            except LockedOut as e:
                self.say(f"✗ {e}")
                self._sleep(e.retry_after)
                continue
            except VaultError as e:
                logger.error("Unlock failed: %s", e)
                self.say(f"✗ Cannot unlock vault: {e}")
                return False
            failures += 1
            left = config.MAX_LOGIN_ATTEMPTS - failures
            self.say(f"✗ Incorrect password! Attempts left: {left}\n")
        self.say("✗ Maximum login attempts reached.")
        return False

    def menu_loop(self) -> str:
        while True:
            self.say(MENU)
            choice = self.ask("Enter your choice (0-9): ")
            if choice == "0":
                return config.STATE_EXIT
            if choice == "9":
                self.controller.lock()
                self.say("✓ Vault locked.\n")
                return config.STATE_LOGIN
            action = self._actions.get(choice)
            if action is None:
                self.say("✗ Invalid choice. Please enter 0-9.\n")
                continue
            self.dispatch(action)

    def dispatch(self, action: Callable[[], None]) -> None:
        """Run one menu action, reporting any vault error."""
        try:
            action()
        except IntegrityError as e:
            self.say("\n!!! SECURITY ALERT !!!")
            self.say(f"✗ {e}")
            self.say("The stored record may have been tampered with or corrupted.")
            self.say("It has not been removed; restore the vault from a backup.\n")
        except VaultError as e:
            self.say(f"✗ {e}\n")
        except ValueError as e:
            self.say(f"✗ {e}\n")

    # -- menu actions -----------------------------------------------------

    def add_password(self) -> None:
        self.say("\n=== Add New Password ===")
        store = self.controller.store
        service = self.ask("Service name (e.g., GitHub, Gmail): ")
        if service in store:
            self.say(f"✗ A password for '{service}' already exists. Use Update instead.\n")
            return
        username = self.ask("Username/Email: ")
        secret = self.ask_secret("Password (leave blank to generate): ")
        if not secret:
            secret = generate_password()
            self.say("Generated a random password.")

        try:
            store.add(service, username, secret)
        except WeakSecret as e:
            self.say(str(e))
            if not self.confirm("Add anyway? (y/n): "):
                self.say("Password not saved.\n")
                return
            store.add(service, username, secret, allow_weak=True)
        self._save()
        self.say(f"✓ Password for '{service}' saved successfully!\n")

    def view_password(self) -> None:
        self.say("\n=== View Password ===")
        service = self.ask("Service name: ")
        record = self.controller.store.get(service)
        self.say("\n--- Password Entry ---")
        self.say(f"Service:    {record.service}")
        self.say(f"Username:   {record.username}")
        self.say(f"Password:   {record.secret}")
        self.say(f"Created:    {record.created_at:%Y-%m-%d %H:%M:%S} UTC")
        self.say(f"Updated:    {record.updated_at:%Y-%m-%d %H:%M:%S} UTC")
        self.say(f"Strength:   {describe_strength(record.secret)}")
        self.say("--------------------\n")

    def update_password(self) -> None:
        self.say("\n=== Update Password ===")
        store = self.controller.store
        service = self.ask("Service name: ")
        if service not in store:
            self.say(f"✗ No password found for '{service}'.\n")
            return
        new_secret = self.ask_secret("New password (press Enter to keep current): ") or None
        new_username = self.ask("New username (press Enter to keep current): ") or None

        try:
            store.update(service, new_username, new_secret)
        except WeakSecret as e:
            self.say(str(e))
            if not self.confirm("Update anyway? (y/n): "):
                self.say("Password not updated.\n")
                return
            store.update(service, new_username, new_secret, allow_weak=True)
        self._save()
        self.say(f"✓ Password for '{service}' updated successfully!\n")

    def delete_password(self) -> None:
        self.say("\n=== Delete Password ===")
        service = self.ask("Service name: ")
        self.controller.store.delete(service)
        self._save()
        self.say(f"✓ Password for '{service}' deleted successfully!\n")

    def list_all(self) -> None:
        self.say("\n=== Stored Services ===")
        services = self.controller.store.list()
        if not services:
            self.say("No passwords stored yet.\n")
            return
        for i, service in enumerate(services, 1):
            self.say(f"{i}. {service}")
        self.say(f"Total: {len(services)} password(s)\n")

    def search_passwords(self) -> None:
        self.say("\n=== Search Passwords ===")
        query = self.ask("Search for service: ")
        results = self.controller.store.search(query)
        if not results:
            self.say(f"No services found matching '{query}'.\n")
            return
        self.say(f"Found {len(results)} match(es):")
        for service in results:
            self.say(f"  - {service}")
        self.say()

    def show_generated_password(self) -> None:
        self.say("\n=== Generate Password ===")
        raw = self.ask(f"Length (default {config.PASSWORD_GENERATOR_DEFAULT_LENGTH}): ")
        length = int(raw) if raw else config.PASSWORD_GENERATOR_DEFAULT_LENGTH
        exclude = self.confirm("Exclude ambiguous characters? (y/n): ")
        self.say(generate_password(length, exclude_ambiguous=exclude) + "\n")

    def change_master_password(self) -> None:
        self.say("\n=== Change Master Password ===")
        current = self.ask_secret("Current master password: ")
        new = self.ask_secret("New master password: ")
        confirm = self.ask_secret("Confirm new master password: ")
        try:
            self.controller.change_passphrase(current, new, confirm)
        except WeakSecret as e:
            self.say(str(e))
            if not self.confirm("Use it anyway? (y/n): "):
                self.say("Master password not changed.\n")
                return
            self.controller.change_passphrase(current, new, confirm, allow_weak=True)
        self._save()
        self.say("✓ Master password changed.\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="credvault", description=config.APP_TITLE)
    parser.add_argument(
        "--vault", default=os.path.join(config.default_data_dir(), config.DEFAULT_VAULT_FILE),
        help="Path to the encrypted vault file",
    )
    parser.add_argument(
        "--memory", action="store_true",
        help="Keep the vault in memory only; nothing is written to disk",
    )
    parser.add_argument("--audit-log", help="Write security events to this file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    )

    audit_path = args.audit_log
    if audit_path is None and not args.memory:
        audit_path = os.path.join(os.path.dirname(os.path.abspath(args.vault)), config.AUDIT_LOG_FILE)
    if audit_path:
        audit.configure_audit_log(audit_path)

    vault_file = None
    vault = None
    if not args.memory:
        vault_file = VaultFile(args.vault)
        if vault_file.exists():
            try:
                vault = vault_file.load()
            except VaultFormatError as e:
                print(f"✗ Cannot open {args.vault}: {e}", file=sys.stderr)
                return 1

    controller = SessionController(vault)
    app = ConsoleApp(controller, vault_file)
    try:
        return app.run()
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted.", file=sys.stderr)
        return 130
    finally:
        controller.lock()


if __name__ == "__main__":
    sys.exit(main())
