import os
import sys
import struct
from typing import Iterable, Sequence

import pytest

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)


SCENARIO_ROWS = [
    ["marker_1", "age", "cell_type"],
    ["1", "10", "A"],
    ["2", "20", "A"],
    ["3", "30", "B"],
    ["4", "40", "B"],
]


def _write(path, rows: Iterable[Sequence[str]], delimiter: str = ",") -> str:
    path.write_text("\n".join(delimiter.join(row) for row in rows) + "\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def write_dataset(tmp_path):
    def _writer(rows, name="dataset.csv", delimiter=","):
        return _write(tmp_path / name, rows, delimiter=delimiter)

    return _writer


@pytest.fixture
def scenario_path(write_dataset):
    return write_dataset(SCENARIO_ROWS)


@pytest.fixture
def png_size():
    def _size(data: bytes):
        assert data[:8] == b"\x89PNG\r\n\x1a\n"
        # IHDR is always the first chunk: length(4) type(4) width(4) height(4)
        assert data[12:16] == b"IHDR"
        return struct.unpack(">II", data[16:24])

    return _size
