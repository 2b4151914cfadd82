"""srpk - A minimal, local, single-user password vault.
Uses SQLite storage and libsodium cryptography via pynacl.
"""

__version__ = "0.3.0"
