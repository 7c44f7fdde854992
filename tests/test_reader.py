import numpy as np
import pytest

from wavearchive import wavelogging
from wavearchive.constants import Component, WaveformKind
from wavearchive.dictionary import ArchiveDictionary
from wavearchive.errors import FormatError
from wavearchive.reader import (
    read_basic,
    read_dictionary,
    read_full,
    read_metadata,
    read_partial,
    resolve_archive_paths,
)
from wavearchive.record_codec import encode_records
from wavearchive.writer import write_basic, write_partial


def test_resolve_archive_paths(tmp_path):
    assert resolve_archive_paths(tmp_path, partial=False) == (
        tmp_path / "basicID.dat",
        tmp_path / "basicData.dat",
    )
    assert resolve_archive_paths(tmp_path, partial=True) == (
        tmp_path / "partialID.dat",
        tmp_path / "partialData.dat",
    )


def test_read_metadata(tmp_path, three_records):
    id_path, _ = write_basic(three_records, tmp_path)
    records = read_metadata(id_path)
    assert records == three_records
    assert not any(record.has_data for record in records)
    assert [record.kind for record in records] == [
        WaveformKind.SYNTHETIC,
        WaveformKind.OBSERVED,
        WaveformKind.SYNTHETIC,
    ]
    assert records[2].start_time == 700.0
    assert records[2].npts == 80
    assert records[0].component == Component.T
    assert records[0].observer.station == "MAJO"


def test_read_full(tmp_path, three_records):
    write_basic(three_records, tmp_path)
    records = read_basic(tmp_path, with_data=True, workers=2)
    assert records == three_records
    for record, original in zip(records, three_records):
        assert record.data.shape == (record.npts,)
        np.testing.assert_array_equal(record.data, original.data)


def test_directory_and_explicit_paths_agree(tmp_path, three_records):
    id_path, data_path = write_basic(three_records, tmp_path)
    assert read_basic(tmp_path) == read_basic(id_path)
    from_dir = read_basic(tmp_path, with_data=True)
    explicit = read_basic(id_path, data_path=data_path, with_data=True)
    for record, other in zip(from_dir, explicit):
        np.testing.assert_array_equal(record.data, other.data)


def test_explicit_id_path_needs_data_path(tmp_path, three_records):
    id_path, _ = write_basic(three_records, tmp_path)
    with pytest.raises(ValueError):
        read_basic(id_path, with_data=True)


@pytest.mark.parametrize("size_change", [-1, 1, 8])
def test_data_file_size_mismatch(tmp_path, three_records, size_change):
    id_path, data_path = write_basic(three_records, tmp_path)
    content = data_path.read_bytes()
    if size_change < 0:
        data_path.write_bytes(content[:size_change])
    else:
        data_path.write_bytes(content + bytes(size_change))

    with pytest.raises(FormatError, match="basicData.dat"):
        read_full(id_path, data_path)
    # metadata alone does not look at the data file
    assert len(read_metadata(id_path)) == 3


def test_truncated_id_file(tmp_path, three_records):
    id_path, _ = write_basic(three_records, tmp_path)
    id_path.write_bytes(id_path.read_bytes()[:-1])
    with pytest.raises(FormatError):
        read_metadata(id_path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_basic(tmp_path)


def test_stored_offsets_are_ignored(tmp_path, three_records):
    dictionary = ArchiveDictionary.from_records(three_records)
    id_path = tmp_path / "basicID.dat"
    data_path = tmp_path / "basicData.dat"
    id_path.write_bytes(
        dictionary.encode()
        + encode_records(three_records, dictionary, [123, 0, 7]).tobytes()
    )
    data_path.write_bytes(
        b"".join(record.data.astype(">f8").tobytes() for record in three_records)
    )

    records = read_full(id_path, data_path)
    assert [record.start_byte for record in records] == [0, 800, 1600]
    np.testing.assert_array_equal(records[2].data, three_records[2].data)


def test_read_dictionary(tmp_path, three_records):
    id_path, _ = write_basic(three_records, tmp_path)
    dictionary, n_records = read_dictionary(id_path)
    assert n_records == 3
    assert dictionary.counts() == [1, 1, 1, 1]


def test_partial_round_trip(tmp_path, make_partial):
    records = [
        make_partial(),
        make_partial(voxel=(-10.0, 170.0, 3800.0), npts=30, seed=4),
        make_partial(component=Component.R, npts=0, seed=5),
    ]
    write_partial(records, tmp_path)
    assert read_partial(tmp_path) == records
    loaded = read_partial(tmp_path, with_data=True)
    assert loaded == records
    for record, original in zip(loaded, records):
        np.testing.assert_array_equal(record.data, original.data)


def test_basic_archive_read_as_partial(tmp_path, three_records):
    write_basic(three_records, tmp_path)
    id_path, _ = resolve_archive_paths(tmp_path, partial=False)
    with pytest.raises(FormatError):
        read_partial(id_path)


def test_empty_archive(tmp_path):
    write_basic([], tmp_path)
    assert read_basic(tmp_path) == []
    assert read_basic(tmp_path, with_data=True) == []


def test_concrete_scenario(tmp_path, three_records):
    id_path, _ = write_basic(three_records, tmp_path)
    counts = np.frombuffer(id_path.read_bytes()[:8], dtype=">i2")
    assert counts[:3].tolist() == [1, 1, 1]

    metadata = read_basic(tmp_path)
    assert len(metadata) == 3
    assert [record.npts for record in metadata] == [100, 100, 80]

    loaded = read_basic(tmp_path, with_data=True)
    assert [len(record.data) for record in loaded] == [100, 100, 80]


def test_corrupt_station_name(tmp_path, three_records):
    id_path, _ = write_basic(three_records, tmp_path)
    content = bytearray(id_path.read_bytes())
    # first character of the first station, after the four int16 counts
    content[8] = 0xFF
    id_path.write_bytes(bytes(content))
    with pytest.raises(FormatError, match="basicID.dat is invalid"):
        read_basic(tmp_path)


def test_rejected_files_are_logged_off_stdout(tmp_path, three_records, caplog):
    id_path, data_path = write_basic(three_records, tmp_path)
    data_path.write_bytes(data_path.read_bytes()[:-8])
    with pytest.raises(FormatError):
        read_full(id_path, data_path)
    id_path.write_bytes(id_path.read_bytes()[:-1])
    with pytest.raises(FormatError):
        read_metadata(id_path)

    rejected = [
        record.getMessage()
        for record in caplog.records
        if record.levelno == wavelogging.NOPRINTERROR
    ]
    assert len(rejected) == 2
    assert "basicData.dat" in rejected[0]
    assert "basicID.dat" in rejected[1]
