"""
Streaming georeferencing of ASCII PLY point clouds.

The input document is rewritten with the same structure:

- every header line is copied verbatim
- for every vertex row, the first three fields (the coordinates) are mapped
  from the visual odometry frame to the reference frame with R^T (p - T),
  then back to longitude/latitude/altitude with the geodetic frame, and
  written with fixed precision
- all other fields are copied byte-for-byte

Only one homogeneous vertex element is supported. Rows are read as a stream
of whitespace-separated tokens grouped by the number of declared properties,
so a row may span several physical lines; each output row is one line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO, Iterator, List, Optional

import numpy as np

from .geodetic import GeodeticFrame
from .rigid_registration import RigidTransform
from ..utils.errors import InputPathError, OutputPathError, PlyFormatError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

FORMAT_TAG = "ply"
END_HEADER = "end_header"
COORDINATE_FIELDS = 3

# Non-ASCII bytes (comments from scanner software, for instance) are carried
# through unchanged as surrogates; in a coordinate they fail float parsing.
PLY_ENCODING = "ascii"
PLY_ERRORS = "surrogateescape"


class HeaderLineKind(Enum):
    FORMAT_TAG = "ply"
    FORMAT = "format"
    ELEMENT = "element"
    PROPERTY = "property"
    COMMENT = "comment"
    END_HEADER = "end_header"
    OTHER = "other"


def classify_header_line(line: str) -> HeaderLineKind:
    """Classify one PLY header line by its leading keyword."""
    tokens = line.split()
    if not tokens:
        return HeaderLineKind.OTHER
    keyword = tokens[0]
    if keyword == FORMAT_TAG and len(tokens) == 1:
        return HeaderLineKind.FORMAT_TAG
    if keyword == "format":
        return HeaderLineKind.FORMAT
    if keyword == "element":
        return HeaderLineKind.ELEMENT
    if keyword == "property":
        return HeaderLineKind.PROPERTY
    if keyword in ("comment", "obj_info"):
        return HeaderLineKind.COMMENT
    if keyword == END_HEADER:
        return HeaderLineKind.END_HEADER
    return HeaderLineKind.OTHER


@dataclass
class PlyProperty:
    type_tag: str
    name: str


@dataclass
class PlyHeader:
    """Parsed header of an ASCII PLY document.

    ``lines`` holds the header exactly as read (without line terminators),
    from the format tag to the end-of-header marker.
    """
    lines: List[str] = field(default_factory=list)
    properties: List[PlyProperty] = field(default_factory=list)
    element_name: Optional[str] = None
    vertex_count: Optional[int] = None
    format_name: Optional[str] = None

    @property
    def columns(self) -> int:
        return len(self.properties)


def read_header(stream: IO[str]) -> PlyHeader:
    """
    Read and validate a PLY header, leaving ``stream`` at the first data byte.

    Raises:
        PlyFormatError: Missing format tag, binary format, list properties,
            several elements, fewer than three properties or no end_header
    """
    first = stream.readline()
    if classify_header_line(first) is not HeaderLineKind.FORMAT_TAG:
        raise PlyFormatError("Unknown input format: missing 'ply' format tag")

    header = PlyHeader(lines=[first.rstrip("\r\n")])
    for raw in stream:
        line = raw.rstrip("\r\n")
        header.lines.append(line)
        kind = classify_header_line(line)
        tokens = line.split()

        if kind is HeaderLineKind.END_HEADER:
            break
        if kind is HeaderLineKind.FORMAT:
            header.format_name = tokens[1] if len(tokens) > 1 else None
            if header.format_name != "ascii":
                raise PlyFormatError(f"Unsupported PLY format '{header.format_name}', only ascii is handled")
        elif kind is HeaderLineKind.ELEMENT:
            if header.element_name is not None:
                raise PlyFormatError(
                    f"Only a single element is supported, found '{header.element_name}' and '{' '.join(tokens[1:])}'"
                )
            if len(tokens) != 3:
                raise PlyFormatError(f"Malformed element declaration: '{line}'")
            header.element_name = tokens[1]
            try:
                header.vertex_count = int(tokens[2])
            except ValueError:
                raise PlyFormatError(f"Malformed element count in '{line}'") from None
        elif kind is HeaderLineKind.PROPERTY:
            if len(tokens) > 1 and tokens[1] == "list":
                raise PlyFormatError(f"List properties are not supported: '{line}'")
            if len(tokens) != 3:
                raise PlyFormatError(f"Malformed property declaration: '{line}'")
            header.properties.append(PlyProperty(type_tag=tokens[1], name=tokens[2]))
    else:
        raise PlyFormatError("Header ended without 'end_header'")

    if header.format_name is None:
        logger.warning("PLY header has no format line; assuming ascii")
    if header.columns < COORDINATE_FIELDS:
        raise PlyFormatError(
            f"Vertex rows need at least {COORDINATE_FIELDS} properties, header declares {header.columns}"
        )
    names = [p.name for p in header.properties[:COORDINATE_FIELDS]]
    if names != ["x", "y", "z"]:
        logger.debug(f"Treating properties {names} as coordinates")
    return header


def iter_rows(stream: IO[str], columns: int) -> Iterator[List[str]]:
    """
    Yield vertex rows as lists of exactly ``columns`` tokens.

    Raises:
        PlyFormatError: If the stream ends inside a row
    """
    pending: List[str] = []
    for line in stream:
        tokens = line.split()
        if not tokens:
            continue
        pending.extend(tokens)
        while len(pending) >= columns:
            yield pending[:columns]
            pending = pending[columns:]
    if pending:
        raise PlyFormatError(
            f"Truncated vertex record: {len(pending)} of {columns} fields before end of file"
        )


@dataclass
class TransformReport:
    rows: int
    columns: int
    declared_vertices: Optional[int]


class PointCloudTransformer:
    """
    Georeferences the vertices of an ASCII PLY document.

    Args:
        transform: Rigid transform estimated by RigidAligner (src = R ref + T)
        frame: Geodetic frame used to localize the GPS track
        chunk_rows: Number of rows transformed per vectorized batch
        precision: Decimal places written for the transformed coordinates
    """

    def __init__(self, transform: RigidTransform, frame: GeodeticFrame, *,
                 chunk_rows: int = 100_000, precision: int = 16):
        if chunk_rows <= 0:
            raise ValueError(f"chunk_rows must be positive, got {chunk_rows}")
        self.transform = transform
        self.frame = frame
        self.chunk_rows = int(chunk_rows)
        self.precision = int(precision)

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Map Nx3 visual odometry points to longitude/latitude/altitude."""
        return self.frame.delocalize(self.transform.to_reference(points))

    def transform_file(self, input_path: str | Path, output_path: str | Path) -> TransformReport:
        """
        Rewrite ``input_path`` into ``output_path`` with georeferenced vertices.

        The header is validated before the output is created, so a document
        with a bad header produces no output file. A data error met while
        streaming removes the partial output.

        Raises:
            InputPathError: If the input cannot be opened
            OutputPathError: If the output cannot be created
            PlyFormatError: On header or vertex data errors
        """
        input_path = Path(input_path)
        output_path = Path(output_path)

        try:
            src = input_path.open("r", encoding=PLY_ENCODING, errors=PLY_ERRORS, newline="")
        except OSError as e:
            raise InputPathError(f"Unable to load {input_path.name} for input: {e}") from e

        with src:
            header = read_header(src)
            logger.info(
                f"Transforming {input_path.name}: {header.vertex_count} declared vertices, "
                f"{header.columns} properties"
            )
            try:
                dst = output_path.open("w", encoding=PLY_ENCODING, errors=PLY_ERRORS, newline="\n")
            except OSError as e:
                raise OutputPathError(f"Unable to create {output_path.name} for output: {e}") from e

            try:
                with dst:
                    report = self._write(header, src, dst)
            except PlyFormatError:
                output_path.unlink(missing_ok=True)
                raise

        if header.vertex_count is not None and header.vertex_count != report.rows:
            logger.warning(
                f"{input_path.name}: header declares {header.vertex_count} vertices, {report.rows} rows transformed"
            )
        logger.info(f"Wrote georeferenced point cloud: {output_path} ({report.rows} rows)")
        return report

    def transform_stream(self, src: IO[str], dst: IO[str]) -> TransformReport:
        """Stream variant of ``transform_file`` working on open text streams."""
        header = read_header(src)
        return self._write(header, src, dst)

    def _write(self, header: PlyHeader, src: IO[str], dst: IO[str]) -> TransformReport:
        for line in header.lines:
            dst.write(line + "\n")

        rows = 0
        chunk: List[List[str]] = []
        for row in iter_rows(src, header.columns):
            chunk.append(row)
            if len(chunk) >= self.chunk_rows:
                self._write_chunk(chunk, dst, first_row=rows)
                rows += len(chunk)
                chunk = []
        if chunk:
            self._write_chunk(chunk, dst, first_row=rows)
            rows += len(chunk)

        return TransformReport(rows=rows, columns=header.columns, declared_vertices=header.vertex_count)

    def _write_chunk(self, chunk: List[List[str]], dst: IO[str], *, first_row: int) -> None:
        try:
            coords = np.array([row[:COORDINATE_FIELDS] for row in chunk], dtype=np.float64)
        except ValueError:
            bad = next(
                i for i, row in enumerate(chunk)
                if not all(_is_float(tok) for tok in row[:COORDINATE_FIELDS])
            )
            raise PlyFormatError(
                f"Non-numeric coordinate in vertex row {first_row + bad}: {chunk[bad][:COORDINATE_FIELDS]}"
            ) from None

        georef = self.transform_points(coords)
        fmt = f"{{:.{self.precision}f}}"
        lines = []
        for values, row in zip(georef, chunk):
            fields = [fmt.format(v) for v in values]
            fields.extend(row[COORDINATE_FIELDS:])
            lines.append(" ".join(fields))
        dst.write("\n".join(lines) + "\n")


def _is_float(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True
