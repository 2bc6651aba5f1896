"""Settings file handling.

Settings are mirrored to a flat YAML mapping next to the database. With
``ENCRYPT_SETTINGS=1`` the API token is kept in the system keyring and the
file only records that one is set.
"""

import os

import keyring
import yaml

APP_VERSION = "1.0.0"
KEYRING_SERVICE = "train"
# written to the file in place of a value held by the keyring
STORED_IN_KEYRING = True


class YamlConfig:
    """Read and write the settings file."""

    SENSITIVE_KEYS = frozenset({"api_token"})

    def __init__(self, path: str = "settings.yaml", service: str = KEYRING_SERVICE) -> None:
        self.path = path
        self.service = service

    @property
    def encrypt(self) -> bool:
        return os.environ.get("ENCRYPT_SETTINGS") == "1"

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping of settings")
        return data

    def load(self) -> dict:
        data = self._read()
        if self.encrypt:
            for key in self.SENSITIVE_KEYS & data.keys():
                if data[key] is STORED_IN_KEYRING:
                    self._restore_secret(data, key)
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            for key in self.SENSITIVE_KEYS & out.keys():
                out[key] = self._store_secret(key, out[key])
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)

    def _restore_secret(self, data: dict, key: str) -> None:
        secret = keyring.get_password(self.service, key)
        if secret is None:
            # removed from the keyring outside the app
            data.pop(key)
        else:
            data[key] = secret

    def _store_secret(self, key: str, value):
        if value is STORED_IN_KEYRING:
            return value
        if value:
            keyring.set_password(self.service, key, str(value))
            return STORED_IN_KEYRING
        if keyring.get_password(self.service, key) is not None:
            keyring.delete_password(self.service, key)
        return value
