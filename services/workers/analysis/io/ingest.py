from __future__ import annotations
import csv
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from ..core.constants import _TSV_EXTENSIONS
from ..core.types import (
    AggregationResult,
    AnalysisConfig,
    ColumnAccumulator,
    ColumnResolution,
    DatasetHandle,
)
from ..core.utils import _parse_float

logger = logging.getLogger(__name__)


class _HeaderNormalizer:
    """Normalizes and deduplicates column headers for delimited inputs."""

    def __init__(self) -> None:
        self._base_counts: Dict[str, int] = {}
        self._used: Set[str] = set()

    def _clean(self, raw: Any, index: int) -> str:
        text = "" if raw is None else str(raw)
        text = text.lstrip("\ufeff").strip()
        if not text:
            return f"column_{index + 1}"
        return text

    def _allocate(self, base: str) -> str:
        count = self._base_counts.get(base, 0)
        candidate = base if count == 0 else f"{base}_{count + 1}"
        while candidate in self._used:
            count += 1
            candidate = f"{base}_{count + 1}"
        self._base_counts[base] = count + 1
        self._used.add(candidate)
        return candidate

    def normalize(self, fieldnames: Sequence[Any]) -> List[str]:
        return [self._allocate(self._clean(name, index)) for index, name in enumerate(fieldnames)]

    def generate_default(self, width: int) -> List[str]:
        return [self._allocate(f"column_{index + 1}") for index in range(width)]


def _delimiter_for(path: str) -> str:
    return "\t" if Path(path).suffix.lower() in _TSV_EXTENSIONS else ","


def _data_rows(reader: Iterator[List[str]]) -> Iterator[List[str]]:
    for row in reader:
        if not row:
            continue
        yield row


def _read_header(
    rows: Iterator[List[str]], has_headers: bool
) -> Tuple[List[str], Optional[List[str]]]:
    """Return the normalized header and, for headerless files, the first data row."""
    first = next(rows, None)
    if first is None:
        return [], None
    normalizer = _HeaderNormalizer()
    if has_headers:
        return normalizer.normalize(first), None
    return normalizer.generate_default(len(first)), first


def inspect_dataset(
    path: str,
    dataset_id: Optional[str] = None,
    *,
    delimiter: Optional[str] = None,
    has_headers: bool = True,
) -> DatasetHandle:
    """Build a DatasetHandle by reading the header and counting data rows."""
    resolved_delimiter = delimiter or _delimiter_for(path)
    with open(path, "r", encoding="utf-8", newline="") as handle:
        rows = _data_rows(csv.reader(handle, delimiter=resolved_delimiter))
        columns, first_row = _read_header(rows, has_headers)
        row_count = 1 if first_row is not None else 0
        for _ in rows:
            row_count += 1

    return DatasetHandle(
        dataset_id=dataset_id or str(uuid.uuid4()),
        local_path=str(path),
        delimiter=resolved_delimiter,
        has_headers=has_headers,
        columns=tuple(columns),
        row_count=row_count,
    )


def _position(headers: Sequence[str], name: Optional[str]) -> Optional[int]:
    if name is None:
        return None
    for idx, header in enumerate(headers):
        if header == name:
            return idx
    return None


def resolve_columns(headers: Sequence[str], config: AnalysisConfig) -> ColumnResolution:
    group_index = _position(headers, config.group_column)
    target_index = _position(headers, config.target_column)
    boxplot_index = _position(headers, config.boxplot_column)

    covariates: List[Tuple[int, str]] = []
    for name in config.covariates:
        idx = _position(headers, name)
        if idx is None:
            logger.debug("covariate %r not found in header, skipping", name)
            continue
        covariates.append((idx, name))

    selected = [idx for idx in range(len(headers)) if idx != group_index][: max(config.max_columns, 0)]
    if not selected:
        selected = list(range(len(headers)))

    return ColumnResolution(
        headers=tuple(headers),
        selected=tuple(selected),
        target_index=target_index,
        group_index=group_index,
        covariates=tuple(covariates),
        boxplot_index=boxplot_index,
    )


def _cell(row: Sequence[str], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(row):
        return None
    return row[index]


class _StreamingAggregator:
    def __init__(self, resolution: ColumnResolution) -> None:
        self.resolution = resolution
        self.columns = [
            ColumnAccumulator(name=resolution.name_at(idx), index=idx)
            for idx in resolution.selected
        ]
        self.group_sums: Dict[str, List[List[float]]] = {}
        self.regression_rows: List[List[float]] = []
        self.regression_targets: List[float] = []
        self.boxplot_values: Dict[str, List[float]] = {}
        self.row_count = 0

    def process_row(self, row: Sequence[str]) -> None:
        resolution = self.resolution
        group_label = _cell(row, resolution.group_index)
        parsed = [_parse_float(_cell(row, idx)) for idx in resolution.selected]

        for pos, value in enumerate(parsed):
            if value is None:
                continue
            self.columns[pos].update(value)
            if group_label is not None:
                sums = self.group_sums.get(group_label)
                if sums is None:
                    sums = [[0.0, 0] for _ in self.columns]
                    self.group_sums[group_label] = sums
                sums[pos][0] += value
                sums[pos][1] += 1

        target_value = _parse_float(_cell(row, resolution.target_index))
        if target_value is not None:
            for pos, value in enumerate(parsed):
                if value is None or resolution.selected[pos] == resolution.target_index:
                    continue
                self.columns[pos].add_target_pair(value, target_value)
            if resolution.covariates:
                self._record_covariate_row(row, target_value)

        if group_label is not None and resolution.boxplot_index is not None:
            box_value = _parse_float(_cell(row, resolution.boxplot_index))
            if box_value is not None:
                self.boxplot_values.setdefault(group_label, []).append(box_value)

        self.row_count += 1

    def _record_covariate_row(self, row: Sequence[str], target_value: float) -> None:
        values: List[float] = []
        for idx, _name in self.resolution.covariates:
            value = _parse_float(_cell(row, idx))
            if value is None:
                # a partial covariate row is dropped from the regression dataset only
                return
            values.append(value)
        self.regression_rows.append(values)
        self.regression_targets.append(target_value)

    def build(self) -> AggregationResult:
        return AggregationResult(
            resolution=self.resolution,
            row_count=self.row_count,
            columns=self.columns,
            group_sums=self.group_sums,
            regression_rows=self.regression_rows,
            regression_targets=self.regression_targets,
            boxplot_values=self.boxplot_values,
        )


def aggregate_dataset(handle: DatasetHandle, config: AnalysisConfig) -> AggregationResult:
    """Resolve configured columns and make one pass over every data row."""
    with open(handle.local_path, "r", encoding="utf-8", newline="") as source:
        rows = _data_rows(csv.reader(source, delimiter=handle.delimiter))
        headers, first_row = _read_header(rows, handle.has_headers)
        resolution = resolve_columns(headers, config)
        for label, configured, index in (
            ("target", config.target_column, resolution.target_index),
            ("group", config.group_column, resolution.group_index),
            ("boxplot", config.boxplot_column, resolution.boxplot_index),
        ):
            if configured is not None and index is None:
                logger.debug("%s column %r not found in header", label, configured)

        aggregator = _StreamingAggregator(resolution)
        if first_row is not None:
            aggregator.process_row(first_row)
        for row in rows:
            aggregator.process_row(row)
    return aggregator.build()
