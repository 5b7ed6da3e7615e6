"""Readers and writers for the deployed site's configuration files."""
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

from snapshot_restore.core.logging import get_logger

logger = get_logger(__name__)


class ConfigFile:
    """Key-value view over a text configuration file.

    Subclasses parse ``raw`` into ``data`` and rewrite ``raw`` in place so
    that untouched parts of the file survive a write unchanged.
    """

    FILE_NAME = ""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self.raw = ""
        self.data: Dict[str, Any] = {}

    @classmethod
    def load(cls, directory: Union[str, Path]):
        """Load FILE_NAME from directory; a missing file yields an empty reader."""
        path = Path(directory) / cls.FILE_NAME
        me = cls(path if path.is_file() else None)
        if me.path is not None:
            me.consume()
        return me

    def has_file(self) -> bool:
        return self.path is not None and self.path.is_file()

    def consume(self) -> bool:
        if not self.has_file():
            return False
        try:
            self.raw = self.path.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            logger.warning(f"Unable to read {self.path}: {str(e)}")
            return False
        return self.parse(self.raw)

    def parse(self, raw: str) -> bool:
        raise NotImplementedError

    def get(self, key: str, fallback: Any = None) -> Any:
        return self.data.get(key, fallback)

    def write(self) -> bool:
        """Save the (possibly rewritten) raw buffer back to disk."""
        if self.path is None:
            return False
        try:
            self.path.write_text(self.raw, encoding='utf-8')
            logger.info(f"Updated {self.path}")
            return True
        except OSError as e:
            logger.error(f"Unable to write {self.path}: {str(e)}")
            return False


class SiteSettings(ConfigFile):
    """The site's ``wp-config.php``: ``define()`` constants and ``$variables``."""

    FILE_NAME = "wp-config.php"

    DEFAULTS = {
        'DB_NAME': '',
        'DB_USER': '',
        'DB_PASSWORD': '',
        'DB_HOST': 'localhost',
        'DB_CHARSET': 'utf8',
        'DB_COLLATE': '',
        '$table_prefix': 'wp_',
    }

    _DEFINE_RX = re.compile(
        r"""define\s*\(\s*(['"])(?P<key>[^'"]+)\1\s*,\s*(['"])(?P<value>.*?)(?<!\\)\3\s*\)\s*;"""
    )
    _VARIABLE_RX = re.compile(
        r"""(?P<key>\$[A-Za-z_][A-Za-z0-9_]*)\s*=\s*(['"])(?P<value>.*?)(?<!\\)\2\s*;"""
    )

    def parse(self, raw: str) -> bool:
        """Collect string definitions, later ones winning, over the defaults."""
        result = {}
        matches = list(self._DEFINE_RX.finditer(raw)) + list(self._VARIABLE_RX.finditer(raw))
        for match in sorted(matches, key=lambda m: m.start()):
            result[match.group('key')] = _php_unescape(match.group('value'))

        self.data = dict(self.DEFAULTS)
        self.data.update(result)
        return bool(result)

    def get(self, key: str, fallback: Any = None) -> Any:
        if not self.data:
            return self.DEFAULTS.get(key, fallback)
        return self.data.get(key, fallback)

    def update_raw(self, key: str, value: str) -> bool:
        """Rewrite the literal definition of key in the raw buffer.

        Returns:
            True if a definition was found and replaced
        """
        quoted = _php_escape(value)
        if key.startswith('$'):
            pattern = re.escape(key) + r"""\s*=\s*['"].*?['"]\s*;"""
            replacement = f"{key} = '{quoted}';"
        else:
            pattern = r"""define\s*\(\s*['"]""" + re.escape(key) + r"""['"]\s*,\s*['"].*?['"]\s*\)\s*;"""
            replacement = f"define('{key}', '{quoted}');"

        raw, count = re.subn(pattern, lambda _m: replacement, self.raw)
        if not count:
            return False
        self.raw = raw
        self.data[key] = value
        return True


class Htaccess(ConfigFile):
    """Apache rewrite configuration of the deployed site."""

    FILE_NAME = ".htaccess"
    REWRITE_BASE = "RewriteBase"
    REWRITE_RULE = "RewriteRule"

    def parse(self, raw: str) -> bool:
        """Map directive name to arguments; the first occurrence wins.

        RewriteRule lines are keyed by directive and pattern together.
        """
        data = {}
        for line in (line.strip() for line in raw.split("\n")):
            if not line or not line[0].isupper() or not line[0].isalpha():
                continue
            if ' ' not in line:
                continue
            directive, rest = line.split(' ', 1)
            if directive == self.REWRITE_RULE:
                parts = line.split(' ', 2)
                key = f"{parts[0]} {parts[1]}"
                value = parts[2] if len(parts) > 2 else ''
            else:
                key, value = directive, rest
            if key in data:
                continue
            data[key] = value
        self.data = data
        return bool(data)

    def update_raw(self, key: str, value: str) -> bool:
        if key not in self.data:
            return False
        old = self.data[key]
        pattern = re.escape(key) + r"\s+" + re.escape(old)
        self.raw = re.sub(pattern, lambda _m: f"{key} {value}", self.raw)
        self.data[key] = value
        return True

    def update_raw_base(self, new_base: str) -> bool:
        """Point RewriteBase, and the rules built on it, at new_base.

        Only the first occurrence of the old base is replaced in each
        directive so the rest of a rule stays intact.
        """
        old = self.data.get(self.REWRITE_BASE)
        if not old:
            return False
        for key, value in list(self.data.items()):
            if old not in value:
                continue
            self.update_raw(key, value.replace(old, new_base, 1))
        return True


class Manifest(ConfigFile):
    """``snapshot_manifest.txt``: one ``KEY:value`` pair per line."""

    FILE_NAME = "snapshot_manifest.txt"

    def parse(self, raw: str) -> bool:
        data = {}
        for line in raw.split("\n"):
            line = line.strip()
            if not line or ':' not in line:
                continue
            key, value = line.split(':', 1)
            data[key.strip()] = value.strip()
        self.data = data
        return bool(data)

    @property
    def version(self) -> str:
        return self.data.get('SNAPSHOT_VERSION', '0.0')


def _php_escape(value: str) -> str:
    return str(value).replace('\\', '\\\\').replace("'", "\\'")


def _php_unescape(value: str) -> str:
    return value.replace("\\'", "'").replace('\\"', '"').replace('\\\\', '\\')
