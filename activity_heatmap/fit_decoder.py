"""
Binary Telemetry (FIT) Decoding for Activity Heatmaps

This module extracts GPS positions from FIT activity files. It understands
just enough of the protocol to walk the record stream: the file header, the
self-describing definition records and the data records they describe.

The decoder is built for untrusted and damaged input. A record that cannot
be parsed counts as an error and the cursor moves on; decoding only gives up
after a long run of consecutive errors, and not even then if a useful amount
of data has already been recovered.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from loguru import logger

from . import constants
from . import utils
from .binary_cursor import BinaryCursor, EndOfBuffer
from .utils import Coordinate


class RecordOutcome(Enum):
    OK = "ok"
    FAILED = "failed"
    ABORT = "abort"


@dataclass
class FieldDefinition:
    number: int
    size: int
    base_type: int


@dataclass
class MessageDefinition:
    """Field layout registered under a local message-type code."""

    global_number: int
    fields: List[FieldDefinition] = field(default_factory=list)
    developer_size: int = 0

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.fields) + self.developer_size


def has_fit_signature(data: bytes) -> bool:
    """Return True if ``data`` is long enough and carries the ``.FIT`` signature at offset 8."""
    return (
        len(data) >= constants.MIN_HEADER_SIZE
        and bytes(data[8:12]) == constants.FIT_SIGNATURE
    )


def read_file_header(cursor: BinaryCursor) -> Optional[int]:
    """
    Validate the file header and position the cursor at the first record.

    Layout: header size (1 byte), protocol version (1), profile version (2),
    declared data size (4, little-endian), ``.FIT`` signature (4) and, for
    14-byte headers, a 2-byte header CRC which is skipped.

    Args:
        cursor: Cursor positioned at the start of the file.

    Returns:
        The end of the record region, or None if the header is not valid.
        The region ends at the declared size or two bytes before the end of
        the buffer, whichever is later, so files with a wrong size field are
        still read in full.
    """
    if len(cursor) < constants.MIN_HEADER_SIZE:
        return None
    try:
        header_size = cursor.read_u8()
        if header_size < constants.MIN_HEADER_SIZE:
            return None
        cursor.read_u8()      # protocol version
        cursor.read_u16_le()  # profile version
        data_size = cursor.read_u32_le()
        if cursor.read_bytes(4) != constants.FIT_SIGNATURE:
            return None
    except EndOfBuffer:
        return None

    if header_size == constants.HEADER_SIZE_WITH_CRC:
        cursor.skip(constants.CRC_SIZE)

    return max(cursor.pos + data_size, len(cursor) - constants.CRC_SIZE)


def decode_semicircles(raw: int, limit: float) -> Optional[float]:
    """
    Convert a signed 32-bit semicircle value to degrees.

    Args:
        raw: Raw field value.
        limit: Largest accepted magnitude in degrees (90 or 180).

    Returns:
        Degrees rounded to 5 decimals, or None for the "no data" sentinels
        (0x7FFFFFFF and 0) and for out-of-range results.
    """
    if raw == constants.INVALID_SINT32 or raw == 0:
        return None
    degrees = raw * constants.SEMICIRCLES_TO_DEG
    if abs(degrees) > limit:
        return None
    return utils.round_coordinate(degrees)


def classify_degree_candidates(candidates: List[float]) -> Optional[Coordinate]:
    """
    Pick a latitude/longitude pair out of unlabelled degree values.

    Session and lap messages carry positions under field numbers that vary
    between devices. The first value within +/-90 is taken as latitude and
    the first other value (different position and different value) within
    +/-180 as longitude.

    Args:
        candidates: Degree values in field order.

    Returns:
        (lat, lon) or None if no pair can be formed.
    """
    lat_index = next(
        (i for i, value in enumerate(candidates) if abs(value) <= 90.0), None
    )
    if lat_index is None:
        return None
    lat = candidates[lat_index]

    for i, value in enumerate(candidates):
        if i == lat_index or value == lat:
            continue
        if abs(value) <= 180.0:
            return (lat, value)
    return None


class TelemetryDecoder:
    """
    Single-use decoding session over one FIT buffer.

    The local-code table lives on the instance, so definitions never leak
    between files; a new definition for a local code replaces the old one.
    """

    def __init__(
        self,
        data: bytes,
        max_consecutive_errors: int = constants.MAX_CONSECUTIVE_ERRORS,
        salvage_min_coordinates: int = constants.SALVAGE_MIN_COORDINATES,
    ):
        self.cursor = BinaryCursor(data)
        self.max_consecutive_errors = max_consecutive_errors
        self.salvage_min_coordinates = salvage_min_coordinates
        self.definitions: Dict[int, MessageDefinition] = {}
        self.coordinates: List[Coordinate] = []
        self.failed_records = 0

    def decode(self) -> List[Coordinate]:
        """
        Walk the record stream and collect every decodable position.

        Returns:
            Coordinates in file order. Empty if the header is not a valid
            FIT header.
        """
        cursor = self.cursor
        data_end = read_file_header(cursor)
        if data_end is None:
            logger.debug("Buffer has no valid FIT header; nothing decoded")
            return []

        consecutive_errors = 0
        while cursor.pos < data_end and cursor.remaining >= 1:
            start = cursor.pos
            outcome = self._read_record()

            if outcome is RecordOutcome.ABORT:
                logger.debug(f"Oversized message at offset {start}; stopping decode")
                break
            if outcome is RecordOutcome.OK:
                consecutive_errors = 0
                continue

            self.failed_records += 1
            consecutive_errors += 1
            if cursor.pos == start:
                cursor.skip(1)

            if consecutive_errors >= self.max_consecutive_errors:
                if len(self.coordinates) >= self.salvage_min_coordinates:
                    logger.debug(
                        f"{consecutive_errors} consecutive bad records at offset {cursor.pos}; "
                        f"continuing with {len(self.coordinates)} coordinates recovered"
                    )
                    consecutive_errors //= 2
                else:
                    logger.debug(
                        f"{consecutive_errors} consecutive bad records at offset {cursor.pos}; "
                        "giving up on this file"
                    )
                    break

        logger.debug(
            f"Decoded {len(self.coordinates)} coordinates "
            f"({self.failed_records} unreadable records)"
        )
        return self.coordinates

    def _read_record(self) -> RecordOutcome:
        cursor = self.cursor
        try:
            header = cursor.read_u8()
            if header & constants.COMPRESSED_HEADER_FLAG:
                return self._read_data((header >> 5) & 0x03)
            if header & constants.DEFINITION_FLAG:
                return self._read_definition(
                    header & constants.LOCAL_TYPE_MASK,
                    bool(header & constants.DEVELOPER_DATA_FLAG),
                )
            return self._read_data(header & constants.LOCAL_TYPE_MASK)
        except EndOfBuffer:
            return RecordOutcome.FAILED

    def _read_definition(self, local_type: int, has_developer_data: bool) -> RecordOutcome:
        cursor = self.cursor
        cursor.read_u8()  # reserved
        cursor.read_u8()  # architecture
        global_number = cursor.read_u16_le()

        field_count = cursor.read_u8()
        if field_count > constants.MAX_FIELD_COUNT:
            return RecordOutcome.FAILED

        fields = []
        for _ in range(field_count):
            number = cursor.read_u8()
            size = cursor.read_u8()
            base_type = cursor.read_u8()
            if size > constants.MAX_FIELD_SIZE:
                return RecordOutcome.FAILED
            fields.append(FieldDefinition(number, size, base_type))

        developer_size = 0
        if has_developer_data:
            developer_count = cursor.read_u8()
            if developer_count > constants.MAX_FIELD_COUNT:
                return RecordOutcome.FAILED
            for _ in range(developer_count):
                cursor.read_u8()  # field number
                size = cursor.read_u8()
                cursor.read_u8()  # developer data index
                if size > constants.MAX_FIELD_SIZE:
                    return RecordOutcome.FAILED
                developer_size += size

        self.definitions[local_type] = MessageDefinition(global_number, fields, developer_size)
        return RecordOutcome.OK

    def _read_data(self, local_type: int) -> RecordOutcome:
        cursor = self.cursor
        definition = self.definitions.get(local_type)
        if definition is None:
            return RecordOutcome.FAILED

        width = definition.total_size
        if width > cursor.remaining:
            if width < constants.MAX_SKIPPABLE_MESSAGE_SIZE:
                cursor.skip_to_end()
                return RecordOutcome.OK
            return RecordOutcome.ABORT

        if definition.global_number == constants.RECORD_MSG_NUM:
            coordinate = self._read_record_position(definition)
        elif definition.global_number in (constants.SESSION_MSG_NUM, constants.LAP_MSG_NUM):
            coordinate = self._read_summary_position(definition)
        else:
            cursor.skip(width)
            return RecordOutcome.OK

        if coordinate is not None:
            self.coordinates.append(coordinate)
        return RecordOutcome.OK

    def _read_record_position(self, definition: MessageDefinition) -> Optional[Coordinate]:
        cursor = self.cursor
        lat = lon = None
        for fdef in definition.fields:
            if fdef.size != constants.COORDINATE_FIELD_SIZE:
                cursor.skip(fdef.size)
            elif fdef.number == constants.LATITUDE_FIELD:
                lat = decode_semicircles(cursor.read_i32_le(), 90.0)
            elif fdef.number == constants.LONGITUDE_FIELD:
                lon = decode_semicircles(cursor.read_i32_le(), 180.0)
            else:
                cursor.skip(fdef.size)
        cursor.skip(definition.developer_size)
        return utils.make_coordinate(lat, lon)

    def _read_summary_position(self, definition: MessageDefinition) -> Optional[Coordinate]:
        cursor = self.cursor
        candidates = []
        for fdef in definition.fields:
            if fdef.size != constants.COORDINATE_FIELD_SIZE:
                cursor.skip(fdef.size)
                continue
            raw = cursor.read_i32_le()
            if raw == constants.INVALID_SINT32 or raw == 0:
                continue
            candidates.append(utils.round_coordinate(raw * constants.SEMICIRCLES_TO_DEG))
        cursor.skip(definition.developer_size)

        pair = classify_degree_candidates(candidates)
        if pair is None:
            return None
        return utils.make_coordinate(*pair)


def decode_fit(data: bytes) -> List[Coordinate]:
    """
    Decode every GPS position in a FIT buffer.

    Args:
        data: Raw file contents.

    Returns:
        Coordinates in file order; empty for non-FIT or unreadable input.
    """
    return TelemetryDecoder(data).decode()


def read_fit_tracks(data: bytes) -> Optional[List[List[Coordinate]]]:
    """
    Track source for FIT files.

    FIT activities are not split into segments the way GPX files are, so
    the whole file becomes a single raw track.

    Args:
        data: Raw file contents.

    Returns:
        A one-element list holding the decoded coordinates, or None if the
        buffer does not carry the FIT signature.
    """
    if not has_fit_signature(data):
        return None
    return [decode_fit(data)]
