#!/usr/bin/env python3
"""srpk - a minimal local password vault.

Secrets live in an SQLite file, each one sealed with a key derived from the
master password (Argon2id via pynacl). Reading a secret copies it to the
clipboard and clears it again 10 seconds later.
"""

import argparse
import getpass
import os
import sys
from contextlib import contextmanager

from . import __version__, clipboard, config, crypto
from .audit import AuditLogger
from .errors import AlreadyExists, InvalidConfig, VaultError
from .session import VaultSession

PASSWORD_ENV = "SRPK_PASSWORD"
COMMAND_NAMES = ('help', 'init', 'use', 'which', 'ls', 'mk', 'rm', 'get')


def get_password(prompt="password for active vault: "):
    """Get the master password from SRPK_PASSWORD or an interactive prompt.

    The environment variable exists for automation and tests. It is visible
    to other processes of the same user, so avoid it on shared machines.
    """
    env_password = os.environ.get(PASSWORD_ENV)
    if env_password:
        return env_password
    return getpass.getpass(prompt)


def open_audit_log(settings):
    """Create the access logger, reporting an unusable config dir as InvalidConfig."""
    try:
        return AuditLogger(settings.log_path)
    except OSError as e:
        raise InvalidConfig(
            f"cannot use config directory {settings.config_dir}: {e.strerror or e}"
        ) from e


@contextmanager
def audited(audit, action, vault, name=None):
    """Log the outcome of the wrapped command, success or failure."""
    try:
        yield
    except VaultError as e:
        audit.log(type(e).__name__, action, vault, name)
        raise
    except BaseException as e:
        audit.log("ERROR", action, vault, name, reason=type(e).__name__)
        raise
    audit.log("OK", action, vault, name)


def cmd_init(args, settings, audit):
    """Create a new vault file and activate it if no vault is active yet."""
    path = config.vault_file(args.vault)

    with audited(audit, "INIT", path):
        if path.exists():
            raise AlreadyExists(f"vault already exists: {path}")
        crypto.check_params(args.cost, args.memlimit)

        password = get_password("password for the new vault: ")
        confirm = get_password("confirm password: ")
        if password != confirm:
            print("passwords do not match", file=sys.stderr)
            sys.exit(1)
        if not password:
            print("master password must not be empty", file=sys.stderr)
            sys.exit(1)

        created = VaultSession.init_vault(path, password, args.cost, args.memlimit)

    print(f"successfully created new vault at {created}")

    active = config.get_active_vault(settings)
    if active is None or not active.exists():
        active = config.set_active_vault(settings, created)
        print(f"active vault is now {active}")


def cmd_use(args, settings, audit):
    """Set the active vault."""
    with audited(audit, "USE", args.vault):
        active = config.set_active_vault(settings, args.vault)
    print(f"active vault is now {active}")


def cmd_which(args, settings, audit):
    """Show the active vault."""
    active = config.get_active_vault(settings)
    if active is None:
        print("no active vault")
    else:
        print(active)


def cmd_ls(args, settings, audit):
    """List entry names in the active vault."""
    vault = config.require_active_vault(settings)

    with audited(audit, "LS", vault):
        password = get_password()
        with VaultSession(vault) as session:
            session.unlock(password)
            names = session.list()

    if not names:
        print("vault is empty", file=sys.stderr)
        return
    for name in names:
        print(name)


def cmd_mk(args, settings, audit):
    """Create an entry, or replace it with --force."""
    vault = config.require_active_vault(settings)

    with audited(audit, "MK", vault, args.key):
        password = get_password()
        with VaultSession(vault) as session:
            session.unlock(password)

            # Fail before asking for the secret
            if not args.force and session.contains(args.key):
                raise AlreadyExists(f"entry already exists: {args.key} (use --force to replace it)")

            secret = getpass.getpass("new password to add: ")
            if not secret:
                print("secret must not be empty", file=sys.stderr)
                sys.exit(1)

            session.create(args.key, secret, overwrite=args.force)

    print(f"successfully added new key {args.key}")


def cmd_rm(args, settings, audit):
    """Delete an entry."""
    vault = config.require_active_vault(settings)

    with audited(audit, "RM", vault, args.key):
        password = get_password()
        with VaultSession(vault) as session:
            session.unlock(password)
            session.delete(args.key)

    print(f"successfully removed key {args.key}")


def cmd_get(args, settings, audit):
    """Decrypt an entry into the clipboard (or stdout with --show)."""
    vault = config.require_active_vault(settings)

    with audited(audit, "GET", vault, args.key):
        password = get_password()
        with VaultSession(vault) as session:
            session.unlock(password)
            secret = session.read(args.key)

        if args.show:
            print(secret)
            return

        timer = clipboard.copy_with_expiry(secret, clipboard.CLEAR_DELAY)

    print(f"{args.key} has been put into the clipboard and will be cleared in {timer.delay:g}s")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='srpk',
        description="srpk - minimal local password vault",
        epilog="'srpk <key>' is short for 'srpk get <key>'. "
               f"The clipboard is cleared {clipboard.CLEAR_DELAY} seconds after a copy.",
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"%(prog)s {__version__}"
    )
    subparsers = parser.add_subparsers(dest='command', metavar='<command>')

    subparsers.add_parser('help', help='Show this message')

    # vault management
    init_parser = subparsers.add_parser('init', help='Create a new vault at <vault>')
    init_parser.add_argument('vault', help='Vault file (".db" is appended if missing)')
    init_parser.add_argument(
        '--cost', type=int, default=crypto.DEFAULT_COST,
        help=f'Argon2id passes, {crypto.MIN_COST}-{crypto.MAX_COST} (default: {crypto.DEFAULT_COST})'
    )
    init_parser.add_argument(
        '--memlimit', type=int, default=crypto.DEFAULT_MEMLIMIT,
        help=f'Argon2id memory in bytes (default: {crypto.DEFAULT_MEMLIMIT})'
    )

    use_parser = subparsers.add_parser('use', help='Set <vault> as the active vault')
    use_parser.add_argument('vault', help='Vault file')

    subparsers.add_parser('which', help='Show the active vault')

    # entries in the active vault
    subparsers.add_parser('ls', help='List keys in the active vault')

    mk_parser = subparsers.add_parser('mk', help='Create a new password named <key>')
    mk_parser.add_argument('key', help='Entry name')
    mk_parser.add_argument('--force', action='store_true', help='Replace an existing entry')

    rm_parser = subparsers.add_parser('rm', help='Remove the password named <key>')
    rm_parser.add_argument('key', help='Entry name')

    get_parser = subparsers.add_parser('get', help='Copy the password named <key> to the clipboard')
    get_parser.add_argument('key', help='Entry name')
    get_parser.add_argument('--show', action='store_true', help='Print to stdout instead of clipboard')

    return parser


def normalize_argv(argv):
    """Treat a leading word that is not a command as 'get <word>'."""
    if argv and argv[0] not in COMMAND_NAMES and not argv[0].startswith('-'):
        return ['get'] + argv
    return argv


def main(argv=None):
    argv = normalize_argv(list(sys.argv[1:] if argv is None else argv))
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, 'help'):
        parser.print_help()
        sys.exit(0 if args.command == 'help' else 1)

    settings = config.Settings.load()

    commands = {
        'init': cmd_init,
        'use': cmd_use,
        'which': cmd_which,
        'ls': cmd_ls,
        'mk': cmd_mk,
        'rm': cmd_rm,
        'get': cmd_get,
    }

    try:
        # which only reads the pointer and is not logged
        audit = None if args.command == 'which' else open_audit_log(settings)
        commands[args.command](args, settings, audit)
    except VaultError as e:
        print(f"error: {e.message}", file=sys.stderr)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        print(file=sys.stderr)
        sys.exit(130)


if __name__ == '__main__':
    main()
