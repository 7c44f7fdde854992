"""
Module for loading the archive reader/writer configuration.

The configuration is a small JSON file controlling how much parallelism the
archive codecs use. A default file ships with the package; an alternative can
be loaded explicitly.

Functions
---------
default_config_path
  Path of the configuration JSON file shipped with the package.
get_archive_config
  Load the configuration from the default or an overridden path.
resolve_workers
  Turn the configured worker count into a concrete number of threads.

Usage
-----
1. Use `get_archive_config` to load the configuration data from the JSON file.
2. The `ConfigKeys` enumeration can be used to access configuration keys in a type-safe manner.
"""

import multiprocessing
from enum import Enum, auto
from json import load
from pathlib import Path
from typing import Optional, TypedDict


class ConfigDict(TypedDict):
    """A type-annotation describing the archive config keys and their types."""

    workers: int
    chunk_size: int
    progress_increment: int


DEFAULT_CONFIG_NAME = "archive_default.json"


def default_config_path() -> Path:
    """Path of the configuration file shipped with the package.

    Returns
    -------
    Path
        The path to ``configs/archive_default.json``.
    """
    return Path(__file__).resolve().parent / "configs" / DEFAULT_CONFIG_NAME


def get_archive_config(config_path: Optional[Path | str] = None) -> ConfigDict:
    """Get the archive config.

    Parameters
    ----------
    config_path : Optional[Path | str]
        An optional path to override the default config.

    Returns
    -------
    ConfigDict
        The dictionary containing the archive config.

    Raises
    ------
    KeyError
        If the file is missing one of the `ConfigKeys`.
    ValueError
        If a value is out of range.
    """
    if config_path is None:
        config_path = default_config_path()
    with open(config_path, "r") as archive_config_file:
        config = load(archive_config_file)

    missing = [key.name for key in ConfigKeys if key.name not in config]
    if missing:
        raise KeyError(f"{config_path} is missing config keys {missing}")
    if config[ConfigKeys.workers.name] < 0:
        raise ValueError(f"workers must not be negative in {config_path}")
    if config[ConfigKeys.chunk_size.name] < 1:
        raise ValueError(f"chunk_size must be positive in {config_path}")
    if not 0 < config[ConfigKeys.progress_increment.name] <= 100:
        raise ValueError(f"progress_increment must be in (0, 100] in {config_path}")
    return config


def resolve_workers(workers: Optional[int] = None) -> int:
    """Number of worker threads to use.

    Parameters
    ----------
    workers : Optional[int]
        An explicit worker count. None uses the configured value, and 0 means
        one worker per CPU core.

    Returns
    -------
    int
        A positive number of workers.
    """
    if workers is None:
        workers = archive_config[ConfigKeys.workers.name]
    if workers <= 0:
        workers = multiprocessing.cpu_count()
    return workers


class ConfigKeys(Enum):
    """The configuration keys supported in the config. See also ConfigDict."""

    workers = auto()
    chunk_size = auto()
    progress_increment = auto()


archive_config: ConfigDict = get_archive_config()
