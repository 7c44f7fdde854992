"""
Write waveform archives.

An archive is a pair of files: an ID file (dictionary header followed by one
fixed-size record per waveform) and a data file holding the samples of every
record, in record order, as big-endian float64.

If writing fails part way, both files are left in an invalid state and
should be discarded.
"""

import contextlib
import logging
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

import numpy as np

from wavearchive import wavelogging
from wavearchive.constants import (
    BASIC_DATA_FILE_NAME,
    BASIC_ID_FILE_NAME,
    PARTIAL_DATA_FILE_NAME,
    PARTIAL_ID_FILE_NAME,
    SAMPLE_DTYPE,
    SAMPLE_WIDTH,
)
from wavearchive.dictionary import ArchiveDictionary
from wavearchive.errors import RecordKindError
from wavearchive.record_codec import encode_records
from wavearchive.records import BasicRecord, PartialRecord


def check_writable(record: BasicRecord, partial: bool):
    """Check `record` can be written to a basic or partial archive.

    Raises
    ------
    RecordKindError
        If the record is of the other archive type or holds no data.
    """
    if partial and not isinstance(record, PartialRecord):
        raise RecordKindError(
            f"Only partial records go in a partial archive: {record}"
        )
    if not partial and isinstance(record, PartialRecord):
        raise RecordKindError(
            f"Partial records cannot go in a basic archive: {record}"
        )
    if not record.has_data:
        raise RecordKindError(f"Record has no waveform data to write: {record}")


class WaveformArchiveWriter:
    """Stream records into an ID file and a data file.

    The dictionary header is written on entry, so every record added must
    only reference entries of `dictionary`.

    Example:
    with WaveformArchiveWriter(id_path, data_path, dictionary) as writer:
        writer.extend(records)
    """

    def __init__(
        self,
        id_path: Path | str,
        data_path: Path | str,
        dictionary: ArchiveDictionary,
        logger: Optional[logging.Logger] = None,
    ):
        self.id_path = Path(id_path)
        self.data_path = Path(data_path)
        self.dictionary = dictionary
        self.logger = wavelogging.get_basic_logger() if logger is None else logger
        self.n_records = 0
        self.next_byte = 0
        self._id_file = None
        self._data_file = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        if exc_type is not None:
            self.logger.error(
                f"Writing {self.id_path} failed after {self.n_records} records, "
                "the archive is incomplete"
            )

    def open(self):
        header = self.dictionary.encode()
        with contextlib.ExitStack() as stack:
            id_file = stack.enter_context(open(self.id_path, "wb"))
            data_file = stack.enter_context(open(self.data_path, "wb"))
            id_file.write(header)
            stack.pop_all()
        self._id_file, self._data_file = id_file, data_file

    def close(self):
        for handle in (self._id_file, self._data_file):
            if handle is not None:
                handle.close()
        self._id_file = self._data_file = None

    def add(self, record: BasicRecord):
        """Append one record and its samples."""
        self.extend([record])

    def extend(self, records: Iterable[BasicRecord]):
        """Append records and their samples in order.

        Parameters
        ----------
        records : Iterable[BasicRecord]
            Records holding data, of the archive type of the dictionary.

        Raises
        ------
        RecordKindError
            If a record is of the wrong archive type or has no data.
        FormatError
            If a record cannot be encoded with the dictionary.
        """
        if self._id_file is None:
            raise ValueError("The archive writer is not open")
        records = list(records)
        for record in records:
            check_writable(record, self.dictionary.partial)

        start_bytes = []
        for record in records:
            start_bytes.append(self.next_byte)
            self.next_byte += record.npts * SAMPLE_WIDTH
        self._id_file.write(
            encode_records(records, self.dictionary, start_bytes).tobytes()
        )
        for record in records:
            self._data_file.write(record.data.astype(SAMPLE_DTYPE).tobytes())
        self.n_records += len(records)


def write_records(
    records: Iterable[BasicRecord],
    id_path: Path | str,
    data_path: Path | str,
    partial: bool = False,
    logger: Optional[logging.Logger] = None,
) -> ArchiveDictionary:
    """Write records to an ID file and a data file.

    Parameters
    ----------
    records : Iterable[BasicRecord]
        Records holding data. Records are written in the given order.
    id_path : Path | str
        Output ID file, overwritten if it exists.
    data_path : Path | str
        Output data file, overwritten if it exists.
    partial : bool
        If True, write a partial archive.
    logger : Optional[logging.Logger]
        Logger for progress messages.

    Returns
    -------
    ArchiveDictionary
        The dictionary written to the header.

    Raises
    ------
    RecordKindError
        If a record does not match the archive type or has no data.
    FormatError
        If the dictionary overflows or a record cannot be encoded.
    """
    if logger is None:
        logger = wavelogging.get_basic_logger()
    records = list(records)
    for record in records:
        check_writable(record, partial)

    start = time.time()
    dictionary = ArchiveDictionary.from_records(records, partial=partial)
    with WaveformArchiveWriter(id_path, data_path, dictionary, logger=logger) as writer:
        writer.extend(records)
    logger.info(
        f"Wrote {len(records)} records with "
        f"{np.sum([record.npts for record in records], dtype=np.int64)} samples to "
        f"{id_path} in {time.time() - start:.2f}s"
    )
    return dictionary


def _write_archive(
    records: Iterable[BasicRecord],
    output_dir: Path | str,
    id_name: str,
    data_name: str,
    partial: bool,
    logger: Optional[logging.Logger],
) -> tuple[Path, Path]:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    id_path = output_dir / id_name
    data_path = output_dir / data_name
    write_records(records, id_path, data_path, partial=partial, logger=logger)
    return id_path, data_path


def write_basic(
    records: Iterable[BasicRecord],
    output_dir: Path | str,
    logger: Optional[logging.Logger] = None,
) -> tuple[Path, Path]:
    """Write observed and synthetic records to ``basicID.dat`` and ``basicData.dat``.

    Parameters
    ----------
    records : Iterable[BasicRecord]
        Observed or synthetic records holding data.
    output_dir : Path | str
        Directory to write into, created if needed.
    logger : Optional[logging.Logger]
        Logger for progress messages.

    Returns
    -------
    tuple[Path, Path]
        The ID file and data file paths.
    """
    return _write_archive(
        records, output_dir, BASIC_ID_FILE_NAME, BASIC_DATA_FILE_NAME, False, logger
    )


def write_partial(
    records: Iterable[BasicRecord],
    output_dir: Path | str,
    logger: Optional[logging.Logger] = None,
) -> tuple[Path, Path]:
    """Write partial records to ``partialID.dat`` and ``partialData.dat``.

    See `write_basic`.
    """
    return _write_archive(
        records, output_dir, PARTIAL_ID_FILE_NAME, PARTIAL_DATA_FILE_NAME, True, logger
    )
