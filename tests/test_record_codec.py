import numpy as np
import pytest

from wavearchive.constants import MAX_PHASES, WaveformKind
from wavearchive.dictionary import ArchiveDictionary
from wavearchive.errors import FormatError, RecordKindError
from wavearchive.record_codec import (
    BASIC_RECORD_DTYPE,
    PARTIAL_RECORD_DTYPE,
    decode_record,
    decode_records,
    encode_record,
    encode_records,
    sample_offsets,
)
from wavearchive.records import Phase


def test_record_widths():
    assert BASIC_RECORD_DTYPE.itemsize == 48
    assert PARTIAL_RECORD_DTYPE.itemsize == 50


def test_sample_offsets():
    assert sample_offsets([3, 0, 2, 5]).tolist() == [0, 24, 24, 40]
    assert sample_offsets([]).tolist() == []


def test_encode_basic_record_layout(make_basic):
    record = make_basic(
        WaveformKind.OBSERVED,
        phases=frozenset({Phase("ScS"), Phase("S")}),
        start_time=512.5,
        npts=100,
        sampling_hz=20.0,
        convolved=True,
    )
    dictionary = ArchiveDictionary.from_records([record])
    raw = encode_record(record, dictionary, start_byte=1600)
    assert len(raw) == 48
    assert raw[0] == 1

    row = np.frombuffer(raw, dtype=BASIC_RECORD_DTYPE)[0]
    assert row["observer"] == 0
    assert row["component"] == 3
    assert row["phases"].tolist() == [0, 1] + [-1] * (MAX_PHASES - 2)
    assert row["start_time"] == np.float32(512.5)
    assert row["npts"] == 100
    assert row["sampling_hz"] == np.float32(20.0)
    assert row["convolved"] == 1
    assert row["start_byte"] == 1600
    # big-endian npts directly after the phase slots and start time
    npts_offset = 7 + 2 * MAX_PHASES + 4
    assert raw[npts_offset : npts_offset + 4] == (100).to_bytes(4, "big")


def test_synthetic_flag_is_zero(make_basic):
    record = make_basic(WaveformKind.SYNTHETIC)
    raw = encode_record(record, ArchiveDictionary.from_records([record]))
    assert raw[0] == 0


def test_too_many_phases(make_basic):
    phases = frozenset(Phase(f"P{i}") for i in range(MAX_PHASES + 1))
    record = make_basic(phases=phases)
    dictionary = ArchiveDictionary.from_records([record])
    with pytest.raises(FormatError):
        encode_record(record, dictionary)


def test_entry_missing_from_dictionary(make_basic):
    dictionary = ArchiveDictionary.from_records([make_basic()])
    with pytest.raises(FormatError):
        encode_record(make_basic(phases=frozenset({Phase("PcP")})), dictionary)


def test_encode_partial_into_basic_dictionary(make_basic, make_partial):
    dictionary = ArchiveDictionary.from_records([make_basic()])
    with pytest.raises(RecordKindError):
        encode_record(make_partial(), dictionary)


def test_round_trip_keeps_order_and_recomputes_offsets(make_basic):
    records = [
        make_basic(kind, npts=npts, start_time=start)
        for kind, npts, start in [
            (WaveformKind.OBSERVED, 10, 1.0),
            (WaveformKind.SYNTHETIC, 0, 2.0),
            (WaveformKind.SYNTHETIC, 7, 3.0),
            (WaveformKind.OBSERVED, 3, 4.0),
        ]
    ]
    dictionary = ArchiveDictionary.from_records(records)
    block = encode_records(records, dictionary, start_bytes=[999] * 4).tobytes()
    decoded = decode_records(block, dictionary, workers=2, chunk_size=1)
    assert decoded == [record.without_data() for record in records]
    assert [record.start_byte for record in decoded] == [0, 80, 80, 136]
    assert not any(record.has_data for record in decoded)


def test_chunking_does_not_change_result(make_basic):
    records = [make_basic(start_time=float(i), npts=i) for i in range(25)]
    dictionary = ArchiveDictionary.from_records(records)
    block = encode_records(records, dictionary).tobytes()
    chunked = decode_records(block, dictionary, workers=4, chunk_size=3)
    assert chunked == decode_records(block, dictionary, workers=1, chunk_size=100)
    assert [record.start_byte for record in chunked] == [
        record.start_byte for record in decode_records(block, dictionary)
    ]


def test_partial_round_trip(make_partial):
    records = [
        make_partial(),
        make_partial(voxel=(10.0, 20.0, 5000.0), phases=frozenset()),
    ]
    dictionary = ArchiveDictionary.from_records(records, partial=True)
    table = encode_records(records, dictionary)
    assert table.dtype == PARTIAL_RECORD_DTYPE
    assert table["voxel"].tolist() == [0, 1]
    assert table["partial_type"].tolist() == [32, 32]
    decoded = decode_records(table.tobytes(), dictionary)
    assert decoded == records
    assert decoded[1].phases == frozenset()


def test_decode_record_uses_stored_offset_by_default(make_basic):
    record = make_basic()
    dictionary = ArchiveDictionary.from_records([record])
    raw = encode_record(record, dictionary, start_byte=4096)
    assert decode_record(raw, dictionary).start_byte == 4096
    assert decode_record(raw, dictionary, start_byte=0).start_byte == 0
    with pytest.raises(FormatError):
        decode_record(raw[:-1], dictionary)


def test_any_positive_flag_reads_as_observed(make_basic):
    record = make_basic(WaveformKind.OBSERVED)
    dictionary = ArchiveDictionary.from_records([record])
    table = encode_records([record], dictionary)
    table["kind"] = 5
    assert decode_records(table.tobytes(), dictionary)[0].kind == WaveformKind.OBSERVED


@pytest.mark.parametrize(
    "field, value",
    [
        ("observer", 1),
        ("event", -2),
        ("period_range", 3),
        ("component", 0),
        ("component", 4),
        ("npts", -5),
    ],
)
def test_corrupt_fields_are_rejected(make_basic, field, value):
    record = make_basic()
    dictionary = ArchiveDictionary.from_records([record])
    table = encode_records([record], dictionary)
    table[field] = value
    with pytest.raises(FormatError):
        decode_records(table.tobytes(), dictionary)


@pytest.mark.parametrize("phase_index", [1, -2])
def test_corrupt_phase_index_is_rejected(make_basic, phase_index):
    record = make_basic()
    dictionary = ArchiveDictionary.from_records([record])
    table = encode_records([record], dictionary)
    table["phases"][0, 3] = phase_index
    with pytest.raises(FormatError):
        decode_records(table.tobytes(), dictionary)


@pytest.mark.parametrize("field, value", [("voxel", 1), ("partial_type", 99)])
def test_corrupt_partial_fields_are_rejected(make_partial, field, value):
    record = make_partial()
    dictionary = ArchiveDictionary.from_records([record], partial=True)
    table = encode_records([record], dictionary)
    table[field] = value
    with pytest.raises(FormatError):
        decode_records(table.tobytes(), dictionary)


def test_partial_block_length(make_basic):
    record = make_basic()
    dictionary = ArchiveDictionary.from_records([record])
    block = encode_records([record], dictionary).tobytes()
    with pytest.raises(FormatError):
        decode_records(block[:-2], dictionary)
