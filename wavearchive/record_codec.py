"""
Fixed-size records of an archive ID file.

Every record is a packed big-endian struct referencing dictionary entries by
index. Basic (observed/synthetic) records are 48 bytes::

    kind          i1    positive for observed, otherwise synthetic
    observer      i2
    event         i2
    component     i1    Z=1, R=2, T=3
    period_range  i1
    phases        10 * i2, unused slots hold -1
    start_time    f4
    npts          i4
    sampling_hz   f4
    convolved     i1
    start_byte    i8    informational

Partial records are 50 bytes: no leading kind byte, then the same fields,
followed by ``partial_type i1`` and ``voxel i2``.

The stored ``start_byte`` is written for inspection tools only. Decoding a
block of records recomputes each offset from the cumulative sample counts,
since the data file is laid out in record order.
"""

import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from wavearchive import config, wavelogging
from wavearchive.config import ConfigKeys
from wavearchive.constants import (
    BASIC_RECORD_WIDTH,
    BYTE_ORDER,
    MAX_PHASES,
    PARTIAL_RECORD_WIDTH,
    SAMPLE_WIDTH,
    UNUSED_PHASE_INDEX,
    Component,
    PartialType,
    WaveformKind,
)
from wavearchive.dictionary import ArchiveDictionary
from wavearchive.errors import FormatError
from wavearchive.records import BasicRecord, PartialRecord

_COMMON_FIELDS = [
    ("observer", f"{BYTE_ORDER}i2"),
    ("event", f"{BYTE_ORDER}i2"),
    ("component", "i1"),
    ("period_range", "i1"),
    ("phases", f"{BYTE_ORDER}i2", (MAX_PHASES,)),
    ("start_time", f"{BYTE_ORDER}f4"),
    ("npts", f"{BYTE_ORDER}i4"),
    ("sampling_hz", f"{BYTE_ORDER}f4"),
    ("convolved", "i1"),
    ("start_byte", f"{BYTE_ORDER}i8"),
]

BASIC_RECORD_DTYPE = np.dtype([("kind", "i1")] + _COMMON_FIELDS)
PARTIAL_RECORD_DTYPE = np.dtype(
    _COMMON_FIELDS + [("partial_type", "i1"), ("voxel", f"{BYTE_ORDER}i2")]
)

assert BASIC_RECORD_DTYPE.itemsize == BASIC_RECORD_WIDTH
assert PARTIAL_RECORD_DTYPE.itemsize == PARTIAL_RECORD_WIDTH

_INT32_MAX = np.iinfo(np.int32).max


def record_dtype(partial: bool) -> np.dtype:
    return PARTIAL_RECORD_DTYPE if partial else BASIC_RECORD_DTYPE


def sample_offsets(npts: Sequence[int] | np.ndarray) -> np.ndarray:
    """Byte offset of each record's samples in the data file.

    Parameters
    ----------
    npts : Sequence[int] | np.ndarray
        Sample counts in record order.

    Returns
    -------
    np.ndarray
        int64 offsets, the first being 0.
    """
    sizes = np.asarray(npts, dtype=np.int64) * SAMPLE_WIDTH
    offsets = np.zeros(len(sizes), dtype=np.int64)
    np.cumsum(sizes[:-1], out=offsets[1:])
    return offsets


def _lookup(index: dict, key, what: str, record: BasicRecord) -> int:
    try:
        return index[key]
    except KeyError:
        raise FormatError(
            f"{what} {key} of {record} is not in the dictionary"
        ) from None


def _phase_slots(record: BasicRecord, dictionary: ArchiveDictionary) -> list[int]:
    if len(record.phases) > MAX_PHASES:
        raise FormatError(
            f"{len(record.phases)} phases exceed the {MAX_PHASES} slots of a record: "
            f"{record}"
        )
    slots = [
        _lookup(dictionary.phase_index, phase, "Phase", record)
        for phase in sorted(record.phases)
    ]
    return slots + [UNUSED_PHASE_INDEX] * (MAX_PHASES - len(slots))


def _record_row(
    record: BasicRecord, dictionary: ArchiveDictionary, start_byte: int
) -> tuple:
    dictionary.check_partial(record)
    if record.npts > _INT32_MAX:
        raise FormatError(f"{record.npts} samples do not fit a record: {record}")
    fields = {
        "observer": _lookup(
            dictionary.observer_index, record.observer, "Observer", record
        ),
        "event": _lookup(dictionary.event_index, record.event, "Event", record),
        "component": record.component.code,
        "period_range": _lookup(
            dictionary.period_range_index, record.period_range, "Period range", record
        ),
        "phases": _phase_slots(record, dictionary),
        "start_time": record.start_time,
        "npts": record.npts,
        "sampling_hz": record.sampling_hz,
        "convolved": int(record.convolved),
        "start_byte": start_byte,
    }
    if dictionary.partial:
        fields["partial_type"] = record.partial_type.code
        fields["voxel"] = _lookup(
            dictionary.voxel_index, record.voxel_position, "Voxel", record
        )
    else:
        fields["kind"] = record.kind.flag
    return tuple(fields[name] for name in record_dtype(dictionary.partial).names)


def encode_records(
    records: Iterable[BasicRecord],
    dictionary: ArchiveDictionary,
    start_bytes: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """Encode records into a packed structured array.

    Parameters
    ----------
    records : Iterable[BasicRecord]
        Records whose dictionary entries all appear in `dictionary`.
    dictionary : ArchiveDictionary
        The dictionary of the archive being written.
    start_bytes : Optional[Sequence[int]]
        Offsets to store for each record. Defaults to the offsets implied by
        the records' sample counts.

    Returns
    -------
    np.ndarray
        Structured array of `BASIC_RECORD_DTYPE` or `PARTIAL_RECORD_DTYPE`;
        ``.tobytes()`` gives the on-disk form.

    Raises
    ------
    FormatError
        If a record references an entry missing from the dictionary, or has
        more than 10 phases.
    RecordKindError
        If a record does not match the archive type of the dictionary.
    """
    records = list(records)
    if start_bytes is None:
        start_bytes = sample_offsets([record.npts for record in records])
    table = np.zeros(len(records), dtype=record_dtype(dictionary.partial))
    for i, (record, start_byte) in enumerate(zip(records, start_bytes, strict=True)):
        table[i] = _record_row(record, dictionary, int(start_byte))
    return table


def encode_record(
    record: BasicRecord, dictionary: ArchiveDictionary, start_byte: int = 0
) -> bytes:
    """Encode one record into its 48 (basic) or 50 (partial) bytes."""
    return encode_records([record], dictionary, [start_byte]).tobytes()


def _check_range(
    values: np.ndarray, upper: int, what: str, source: str, allow_unused: bool = False
):
    invalid = (values < 0) | (values >= upper)
    if allow_unused:
        invalid &= values != UNUSED_PHASE_INDEX
    if np.any(invalid):
        position = int(np.argwhere(invalid)[0][0])
        raise FormatError(
            f"{source} is invalid: {what} index {values[invalid][0]} in record "
            f"{position} is out of bounds for {upper} entries"
        )


def _check_codes(values: np.ndarray, valid: list[int], what: str, source: str):
    invalid = ~np.isin(values, valid)
    if np.any(invalid):
        raise FormatError(
            f"{source} is invalid: unknown {what} code {values[invalid][0]}"
        )


def check_table(table: np.ndarray, dictionary: ArchiveDictionary, source: str):
    """Validate every index and code of decoded records against `dictionary`.

    Raises
    ------
    FormatError
        If any index is out of bounds, any code unknown, or any sample count
        negative.
    """
    _check_range(table["observer"], len(dictionary.observers), "observer", source)
    _check_range(table["event"], len(dictionary.events), "event", source)
    _check_range(
        table["period_range"], len(dictionary.period_ranges), "period range", source
    )
    _check_range(
        table["phases"].ravel(),
        len(dictionary.phases),
        "phase",
        source,
        allow_unused=True,
    )
    _check_codes(
        table["component"],
        [component.code for component in Component],
        "component",
        source,
    )
    if np.any(table["npts"] < 0):
        raise FormatError(f"{source} is invalid: negative sample count")
    if dictionary.partial:
        _check_range(table["voxel"], len(dictionary.voxel_positions), "voxel", source)
        _check_codes(
            table["partial_type"],
            [partial_type.code for partial_type in PartialType],
            "partial type",
            source,
        )


def _decode_rows(
    rows: np.ndarray, start_bytes: np.ndarray, dictionary: ArchiveDictionary
) -> list[BasicRecord]:
    records = []
    for row, start_byte in zip(rows, start_bytes):
        fields = dict(
            observer=dictionary.observers[row["observer"]],
            event=dictionary.events[row["event"]],
            component=Component.from_code(row["component"]),
            period_range=dictionary.period_ranges[row["period_range"]],
            phases=frozenset(
                dictionary.phases[i] for i in row["phases"] if i != UNUSED_PHASE_INDEX
            ),
            start_time=float(row["start_time"]),
            npts=int(row["npts"]),
            sampling_hz=float(row["sampling_hz"]),
            convolved=row["convolved"] > 0,
            start_byte=int(start_byte),
        )
        if dictionary.partial:
            records.append(
                PartialRecord(
                    voxel_position=dictionary.voxel_positions[row["voxel"]],
                    partial_type=PartialType.from_code(row["partial_type"]),
                    **fields,
                )
            )
        else:
            records.append(
                BasicRecord(kind=WaveformKind.from_flag(row["kind"]), **fields)
            )
    return records


def decode_record(
    raw: bytes, dictionary: ArchiveDictionary, start_byte: Optional[int] = None
) -> BasicRecord:
    """Decode one fixed-size record.

    Parameters
    ----------
    raw : bytes
        Exactly one record's bytes.
    dictionary : ArchiveDictionary
        The dictionary of the archive the record came from.
    start_byte : Optional[int]
        The true offset of the record's samples. Defaults to the stored one.

    Returns
    -------
    BasicRecord
        A `BasicRecord` or `PartialRecord` without data.

    Raises
    ------
    FormatError
        If `raw` is not one record long or references missing entries.
    """
    dtype = record_dtype(dictionary.partial)
    if len(raw) != dtype.itemsize:
        raise FormatError(f"A record is {dtype.itemsize} bytes, got {len(raw)}")
    table = np.frombuffer(raw, dtype=dtype)
    check_table(table, dictionary, "record")
    if start_byte is None:
        start_byte = int(table["start_byte"][0])
    return _decode_rows(table, np.array([start_byte]), dictionary)[0]


def decode_records(
    block: bytes | memoryview,
    dictionary: ArchiveDictionary,
    workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
    source: str = "<buffer>",
    logger: Optional[logging.Logger] = None,
) -> list[BasicRecord]:
    """Decode a block of consecutive fixed-size records in parallel.

    The block is split into chunks of `chunk_size` records which are decoded
    on a thread pool; the result keeps file order. Byte offsets are
    recomputed from the cumulative sample counts.

    Parameters
    ----------
    block : bytes | memoryview
        The record section of an ID file.
    dictionary : ArchiveDictionary
        The dictionary parsed from the same file.
    workers : Optional[int]
        Number of threads. None uses the configured value.
    chunk_size : Optional[int]
        Records per task. None uses the configured value.
    source : str
        Name of the file, for error messages.
    logger : Optional[logging.Logger]
        Logger for diagnostics.

    Returns
    -------
    list[BasicRecord]
        The records, in file order, without data.

    Raises
    ------
    FormatError
        If the block is not a whole number of records, or any record
        references a missing dictionary entry.
    """
    if logger is None:
        logger = wavelogging.get_basic_logger()
    if chunk_size is None:
        chunk_size = config.archive_config[ConfigKeys.chunk_size.name]

    dtype = record_dtype(dictionary.partial)
    if len(block) % dtype.itemsize != 0:
        raise FormatError(
            f"{source} is invalid: {len(block)} record bytes is not a multiple of "
            f"{dtype.itemsize}"
        )
    table = np.frombuffer(block, dtype=dtype)
    check_table(table, dictionary, source)

    offsets = sample_offsets(table["npts"])
    n_mismatched = int(np.count_nonzero(table["start_byte"] != offsets))
    if n_mismatched:
        logger.debug(
            f"{n_mismatched} stored byte offsets in {source} disagree with the "
            "record order, using offsets from the sample counts"
        )

    slices = [
        slice(start, start + chunk_size) for start in range(0, len(table), chunk_size)
    ]
    with ThreadPoolExecutor(max_workers=config.resolve_workers(workers)) as executor:
        chunks = executor.map(
            lambda chunk: _decode_rows(table[chunk], offsets[chunk], dictionary),
            slices,
        )
        return [record for chunk in chunks for record in chunk]
