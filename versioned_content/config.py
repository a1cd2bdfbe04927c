""" Configuration of the versioning engine.

Configuration lives in an INI file, by default
``~/.config/versioned_content/CONFIG``::

    [engine]
    trunk_branch = main
    idle_timeout = 900
    storage_retries = 3

    [mongo]
    host = localhost
    port = 27017
    database = cms

Missing sections and keys fall back to the defaults of
:class:`EngineConfig` and :class:`MongoConfig`.
"""
import dataclasses
import os
from configparser import ConfigParser
from os.path import expanduser
from typing import Optional, Tuple

CONFIG_DIR = os.path.join(expanduser('~'), '.config', 'versioned_content')
CONFIG_FILE_PTH = os.path.join(CONFIG_DIR, 'CONFIG')

ENGINE_SECTION = 'engine'
MONGO_SECTION = 'mongo'


@dataclasses.dataclass(frozen=True)
class EngineConfig:
    trunk_branch: str = 'main'
    # Seconds without activity after which a collaborative session is closed
    idle_timeout: float = 900.0
    reaper_interval: float = 30.0
    storage_retries: int = 3
    retry_backoff: float = 0.05
    lock_poll_interval: float = 0.1
    lock_timeout: float = 10.0
    # Closed sessions kept for lookups by id, oldest evicted first
    closed_sessions_kept: int = 100


@dataclasses.dataclass(frozen=True)
class MongoConfig:
    host: str = 'localhost'
    port: int = 27017
    database: str = 'versioned_content'
    namespace: str = 'content'
    username: Optional[str] = None
    password: Optional[str] = None


def _read_section(config_file: ConfigParser, section: str, cls):
    if not config_file.has_section(section):
        return cls()
    values = {}
    for field in dataclasses.fields(cls):
        if field.name not in config_file[section]:
            continue
        raw = config_file[section][field.name]
        if field.type in (int, 'int'):
            values[field.name] = int(raw)
        elif field.type in (float, 'float'):
            values[field.name] = float(raw)
        else:
            values[field.name] = raw
    return cls(**values)


def read_config_file(path: str = CONFIG_FILE_PTH) -> ConfigParser:
    config_file = ConfigParser()
    config_file.read(path)
    return config_file


def load_config(
    path: str = CONFIG_FILE_PTH,
) -> Tuple[EngineConfig, MongoConfig]:
    """Load the engine and MongoDB configuration.

    :param path: The INI file to read. A missing file yields the defaults.
    :return: The engine and the MongoDB configuration.
    """
    config_file = read_config_file(path)
    return (
        _read_section(config_file, ENGINE_SECTION, EngineConfig),
        _read_section(config_file, MONGO_SECTION, MongoConfig),
    )
