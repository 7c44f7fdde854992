"""
Read waveform archives.

Records can be read metadata-only from the ID file, or fully with their
samples from the data file. The data file is validated against the records
before any sample is used: its size must equal the total sample count times
eight bytes, otherwise the whole archive is rejected.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

import numpy as np

from wavearchive import config, wavelogging
from wavearchive.config import ConfigKeys
from wavearchive.constants import (
    BASIC_DATA_FILE_NAME,
    BASIC_ID_FILE_NAME,
    PARTIAL_DATA_FILE_NAME,
    PARTIAL_ID_FILE_NAME,
    SAMPLE_DTYPE,
    SAMPLE_WIDTH,
)
from wavearchive.dictionary import ArchiveDictionary
from wavearchive.errors import FormatError
from wavearchive.progress_tracker import ProgressTracker
from wavearchive.record_codec import decode_records
from wavearchive.records import BasicRecord


def resolve_archive_paths(archive_dir: Path | str, partial: bool) -> tuple[Path, Path]:
    """The conventional ID and data file paths inside `archive_dir`."""
    archive_dir = Path(archive_dir)
    if partial:
        return archive_dir / PARTIAL_ID_FILE_NAME, archive_dir / PARTIAL_DATA_FILE_NAME
    return archive_dir / BASIC_ID_FILE_NAME, archive_dir / BASIC_DATA_FILE_NAME


def read_dictionary(
    id_path: Path | str, partial: bool = False
) -> tuple[ArchiveDictionary, int]:
    """Read only the dictionary header of an ID file.

    Returns
    -------
    tuple[ArchiveDictionary, int]
        The dictionary and the number of records in the file.
    """
    with open(id_path, "rb") as id_file:
        buffer = id_file.read()
    dictionary, size = ArchiveDictionary.decode(
        buffer, partial=partial, source=str(id_path)
    )
    return dictionary, (len(buffer) - size) // dictionary.record_width


def read_metadata(
    id_path: Path | str,
    partial: bool = False,
    workers: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> list[BasicRecord]:
    """Read the records of an ID file without their samples.

    Parameters
    ----------
    id_path : Path | str
        The ID file.
    partial : bool
        If True, the file is a partial archive.
    workers : Optional[int]
        Number of decoding threads. None uses the configured value.
    logger : Optional[logging.Logger]
        Logger for progress messages.

    Returns
    -------
    list[BasicRecord]
        Records in file order, without data.

    Raises
    ------
    FormatError
        If the file is malformed.
    """
    if logger is None:
        logger = wavelogging.get_basic_logger()
    start = time.time()
    with open(id_path, "rb") as id_file:
        buffer = id_file.read()
    try:
        dictionary, size = ArchiveDictionary.decode(
            buffer, partial=partial, source=str(id_path)
        )
        records = decode_records(
            memoryview(buffer)[size:],
            dictionary,
            workers=workers,
            source=str(id_path),
            logger=logger,
        )
    except FormatError as e:
        logger.log(wavelogging.NOPRINTERROR, f"Rejected ID file {id_path}: {e}")
        raise
    logger.info(
        f"Read {len(records)} records ({len(dictionary.observers)} observers, "
        f"{len(dictionary.events)} events) from {id_path} in "
        f"{time.time() - start:.2f}s"
    )
    return records


def check_data_size(
    records: list[BasicRecord], data_path: Path | str, id_source: str = "<records>"
):
    """Check the data file holds exactly the samples the records describe.

    Raises
    ------
    FormatError
        If the data file size differs from the total sample count times 8.
    """
    expected = int(np.sum([record.npts for record in records], dtype=np.int64))
    expected *= SAMPLE_WIDTH
    actual = Path(data_path).stat().st_size
    if actual != expected:
        raise FormatError(
            f"{data_path} is invalid: it holds {actual} bytes but {id_source} "
            f"describes {expected} bytes of samples"
        )


def read_samples(
    records: list[BasicRecord],
    data_path: Path | str,
    id_source: str = "<records>",
    workers: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> list[BasicRecord]:
    """Attach samples from a data file to records read from its ID file.

    Parameters
    ----------
    records : list[BasicRecord]
        Records in file order, as returned by `read_metadata`.
    data_path : Path | str
        The data file.
    id_source : str
        Name of the ID file, for error messages.
    workers : Optional[int]
        Number of threads. None uses the configured value.
    logger : Optional[logging.Logger]
        Logger for progress messages.

    Returns
    -------
    list[BasicRecord]
        New records holding their samples, in the same order.

    Raises
    ------
    FormatError
        If the data file size does not match the records.
    """
    if logger is None:
        logger = wavelogging.get_basic_logger()
    try:
        check_data_size(records, data_path, id_source)
    except FormatError as e:
        logger.log(wavelogging.NOPRINTERROR, f"Rejected data file {data_path}: {e}")
        raise

    samples = np.fromfile(data_path, dtype=SAMPLE_DTYPE)
    boundaries = np.cumsum([record.npts for record in records], dtype=np.int64)
    windows = np.split(samples, boundaries[:-1]) if records else []

    chunk_size = config.archive_config[ConfigKeys.chunk_size.name]
    slices = [
        slice(start, start + chunk_size) for start in range(0, len(records), chunk_size)
    ]
    loaded = []
    with ProgressTracker(
        len(records),
        percent_increment=config.archive_config[ConfigKeys.progress_increment.name],
        print_func=logger.info,
        label=f"Reading {data_path}",
    ) as progress:
        with ThreadPoolExecutor(
            max_workers=config.resolve_workers(workers)
        ) as executor:
            chunks = executor.map(
                lambda chunk: [
                    record.with_data(window)
                    for record, window in zip(records[chunk], windows[chunk])
                ],
                slices,
            )
            for chunk in chunks:
                loaded.extend(chunk)
                progress(len(loaded))
    return loaded


def read_full(
    id_path: Path | str,
    data_path: Path | str,
    partial: bool = False,
    workers: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> list[BasicRecord]:
    """Read the records of an archive together with their samples.

    Parameters
    ----------
    id_path : Path | str
        The ID file.
    data_path : Path | str
        The data file.
    partial : bool
        If True, read a partial archive.
    workers : Optional[int]
        Number of threads. None uses the configured value.
    logger : Optional[logging.Logger]
        Logger for progress messages.

    Returns
    -------
    list[BasicRecord]
        Records in file order, holding data.

    Raises
    ------
    FormatError
        If either file is malformed or the files are inconsistent.
    """
    if logger is None:
        logger = wavelogging.get_basic_logger()
    records = read_metadata(id_path, partial=partial, workers=workers, logger=logger)
    start = time.time()
    records = read_samples(
        records, data_path, id_source=str(id_path), workers=workers, logger=logger
    )
    logger.info(
        f"Read samples of {len(records)} records from {data_path} in "
        f"{time.time() - start:.2f}s"
    )
    return records


def _read(
    source: Path | str,
    data_path: Optional[Path | str],
    with_data: bool,
    partial: bool,
    workers: Optional[int],
    logger: Optional[logging.Logger],
) -> list[BasicRecord]:
    source = Path(source)
    if source.is_dir():
        id_path, default_data_path = resolve_archive_paths(source, partial)
        data_path = default_data_path if data_path is None else data_path
    else:
        id_path = source
    if not with_data:
        return read_metadata(id_path, partial=partial, workers=workers, logger=logger)
    if data_path is None:
        raise ValueError(f"A data file is needed to read the samples of {id_path}")
    return read_full(
        id_path, data_path, partial=partial, workers=workers, logger=logger
    )


def read_basic(
    source: Path | str,
    data_path: Optional[Path | str] = None,
    with_data: bool = False,
    workers: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> list[BasicRecord]:
    """Read an observed/synthetic archive.

    Parameters
    ----------
    source : Path | str
        Either a directory holding ``basicID.dat`` and ``basicData.dat``, or
        the ID file itself.
    data_path : Optional[Path | str]
        The data file, needed when `source` is an ID file and `with_data`
        is set.
    with_data : bool
        If True, load the samples too.
    workers : Optional[int]
        Number of threads. None uses the configured value.
    logger : Optional[logging.Logger]
        Logger for progress messages.

    Returns
    -------
    list[BasicRecord]
        Records in file order.
    """
    return _read(source, data_path, with_data, False, workers, logger)


def read_partial(
    source: Path | str,
    data_path: Optional[Path | str] = None,
    with_data: bool = False,
    workers: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> list[BasicRecord]:
    """Read a partial archive (``partialID.dat``/``partialData.dat``).

    See `read_basic`.
    """
    return _read(source, data_path, with_data, True, workers, logger)
