# MIT License

# Copyright (c) 2023 Voxed Team

# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:

# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.

# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.




# Copyright (c) 2013, Dan Jackson.
# All rights reserved.

# Redistribution and use in source and binary forms, with or without 
# modification, are permitted provided that the following conditions are met: 
# 1. Redistributions of source code must retain the above copyright notice, 
#    this list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright notice, 
#    this list of conditions and the following disclaimer in the documentation 
#    and/or other materials provided with the distribution.

# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" 
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE 
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE 
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE 
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR 
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF 
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS 
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN 
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) 
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE 
# POSSIBILITY OF SUCH DAMAGE. 


import logging
import os

from xed_errors import (
    XedEndOfStream,
    XedInvalidArgumentError,
    XedInvalidDataError,
    XedOutOfMemoryError,
    XedTruncatedError,
    xed_diagnostics,
)
from xed_structs import (
    SIZE_UINT_64,
    XED_EVENT_INDEX,
    XED_FRAME_INFO_SIZE,
    XED_HEADER_SIZE,
    XED_INDEX_ENTRY_SIZE,
    XED_INDEX_MARKER,
    xed_cursor,
    xed_end_stream_info,
    xed_event,
    xed_frame_info,
    xed_index,
    xed_index_entry_t,
    xed_stream_index,
    read_header,
)

logger = logging.getLogger(__name__)

XED_MAX_STREAMS = 10
XED_STREAM_ALL = -1


class xed_reader:
    def __init__(self, source, max_streams=XED_MAX_STREAMS):
        self.max_streams = max_streams
        self.diagnostics = xed_diagnostics()

        # Xed file metadata
        self.xed_header = None
        self.stream_info = [None for _ in range(max_streams)]
        self.stream_index = [None for _ in range(max_streams)]
        self.total_events = 0
        self.global_index = []

        # Only handles opened here are closed by close()
        if isinstance(source, (str, bytes, os.PathLike)):
            self.filepath = os.fspath(source)
            self._owns_file = True
            source = open(source, mode="rb")
        else:
            self.filepath = getattr(source, "name", None)
            self._owns_file = False
        self._source = source

        try:
            self.xed_file = xed_cursor(source)
            self._load()
        except BaseException:
            self.close()
            raise

        logger.debug("Xed reader created for %s: %d streams, %d events",
                     self.filepath, self.xed_header.num_streams, self.total_events)

    def _load(self):
        xed_file = self.xed_file

        self.xed_header = read_header(xed_file)

        trailer_offset = self.xed_header.index_file_offset
        if trailer_offset == 0 or trailer_offset >= xed_file.size:
            raise XedInvalidDataError(f"Invalid trailer offset {trailer_offset} (file is {xed_file.size} bytes)")

        for info in read_trailer(xed_file, self.xed_header, self.diagnostics, self.max_streams):
            self.stream_info[info.stream_number] = info

        for info in self.stream_info:
            if info is not None:
                self.stream_index[info.stream_number] = load_stream_index(xed_file, info, self.diagnostics)

        self.global_index = build_global_index(self.stream_index, self.diagnostics)
        self.total_events = len(self.global_index)

        # Seek back to first event
        xed_file.seek(XED_HEADER_SIZE)

    @property
    def num_streams(self):
        return min(self.xed_header.num_streams, self.max_streams)

    def close(self):
        if self._owns_file and self._source is not None:
            self._source.close()
        self._source = None
        self.stream_index = [None for _ in range(self.max_streams)]
        self.global_index = []
        self.total_events = 0

    @property
    def closed(self):
        return self._source is None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def read_trailer(xed_file, header, diagnostics, max_streams=XED_MAX_STREAMS):
    """Read the end stream information of every stream.

    Each record's index offset table is skipped rather than followed, so the
    scan stays aligned whether or not the stream is kept. Returns the kept
    records sorted by stream number.
    """
    xed_file.seek(header.index_file_offset)

    # Get num of end streams
    num_end_stream_info = xed_file.read_int(2)
    if num_end_stream_info != header.num_streams:
        diagnostics.warning(f"Number of end stream information blocks ({num_end_stream_info}) "
                            f"not the same as the number of streams ({header.num_streams})")

    seen = set()
    end_stream_info = []
    for i in range(num_end_stream_info):
        info = xed_end_stream_info(xed_file, i, diagnostics)

        if info.stream_number >= max_streams or info.stream_number >= header.num_streams:
            diagnostics.warning(f"Ignoring end stream information for stream number {info.stream_number} as file "
                                f"maximum was {header.num_streams} and configured maximum was {max_streams}")
            continue

        if info.stream_number in seen:
            raise XedInvalidDataError(f"Stream already indexed {info.stream_number}")
        seen.add(info.stream_number)
        end_stream_info.append(info)

    return sorted(end_stream_info, key=lambda info: info.stream_number)


def load_stream_index(xed_file, info, diagnostics):
    # Every live entry occupies an index entry in the file
    if info.totalIndexEntries * XED_INDEX_ENTRY_SIZE > xed_file.size:
        raise XedInvalidDataError(f"Stream {info.stream_number} declares {info.totalIndexEntries} index entries, "
                                  f"more than a {xed_file.size} byte file can hold")

    try:
        stream_index = [xed_index(info.stream_number) for _ in range(info.totalIndexEntries)]
    except MemoryError:
        raise XedOutOfMemoryError(f"Problem allocating {info.totalIndexEntries} index entries "
                                  f"for stream {info.stream_number}") from None

    for j in range(info.numIndexes):
        xed_file.seek(info.indexTableOffset + j * SIZE_UINT_64)
        index_offset = xed_file.read_int(8)
        xed_file.seek(index_offset)
        index = xed_stream_index(xed_file, j, info.stream_number, diagnostics)

        indexBase = j * info.maxIndexEntries
        if indexBase + index.numEntries > info.totalIndexEntries:
            raise XedInvalidDataError(f"Index #{j} for stream #{info.stream_number} exceeds "
                                      f"total index entries ({info.totalIndexEntries})")

        for k in range(index.numEntries):
            stream_index[indexBase + k].indexEntry = xed_index_entry_t(xed_file)

        # Additional frame information, absent for the whole block when extraPerIndexEntry = 0
        if info.extraPerIndexEntry > 0:
            for k in range(index.numEntries):
                stream_index[indexBase + k].frameInfo = xed_frame_info(xed_file, info.extraPerIndexEntry)

    # Seek to after last index
    xed_file.seek(info.indexTableOffset + info.numIndexes * SIZE_UINT_64)

    mismatched = sum(1 for entry in stream_index if entry.indexEntry.data_size != entry.indexEntry.data_size2)
    if mismatched:
        diagnostics.warning(f"Stream {info.stream_number} has {mismatched} index entries with differing data sizes")

    return stream_index


def build_global_index(stream_index, diagnostics):
    """Merge the per-stream indexes into (stream, position) pairs in file order."""
    streams = [j for j in range(len(stream_index)) if stream_index[j] is not None]
    indexEntry = {j: 0 for j in streams}

    # Count the total number of index entries
    maxEvents = sum(len(stream_index[j]) for j in streams)

    global_index = []
    while True:
        streamId = -1
        nextOffset = 0

        for j in streams:
            # If we still have more events in the stream
            if indexEntry[j] < len(stream_index[j]):
                offs = stream_index[j][indexEntry[j]].indexEntry.frame_file_offset
                if streamId < 0 or offs < nextOffset:
                    streamId = j
                    nextOffset = offs

        # Exit when no more entries
        if streamId < 0:
            break

        # Check if we're trying to overflow the global index (shouldn't be possible)
        if len(global_index) >= maxEvents:
            diagnostics.warning(f"Tried to overflow global index ({maxEvents})")
            break

        global_index.append((streamId, indexEntry[streamId]))
        indexEntry[streamId] += 1

    if len(global_index) != maxEvents:
        diagnostics.warning(f"Global index only has {len(global_index)} / {maxEvents} entries")

    return global_index


def xed_open(filepath, max_streams=XED_MAX_STREAMS):
    return xed_reader(filepath, max_streams=max_streams)


def xed_close(reader: xed_reader):
    reader.close()


def xed_read_header(reader: xed_reader):
    return reader.xed_header


def xed_get_num_events(reader: xed_reader, stream: int):
    if stream == XED_STREAM_ALL:
        return reader.total_events
    elif 0 <= stream < reader.num_streams:
        if reader.stream_index[stream] is None:
            return 0
        return len(reader.stream_index[stream])
    else:
        raise XedInvalidArgumentError(f"Invalid stream {stream}")


# Get an event index
def xed_get_index_entry(reader: xed_reader, stream: int, index: int):
    if stream == XED_STREAM_ALL:
        if 0 <= index < reader.total_events:
            stream, index = reader.global_index[index]
        else:
            raise XedInvalidArgumentError(f"Event {index} out of range (0..{reader.total_events})")

    num_events = xed_get_num_events(reader, stream)
    if not 0 <= index < num_events:
        raise XedInvalidArgumentError(f"Event {index} out of range for stream {stream} (0..{num_events})")

    return reader.stream_index[stream][index]


def read_event_at(xed_file, num_streams, buffer=None):
    """Read the event at the current position of xed_file.

    The payload goes into buffer (any writable buffer); bytes that do not fit
    are skipped. With no buffer, one of exactly the payload size is allocated.
    Raises XedEndOfStream on the index location packet.
    """
    event = xed_event(xed_file)

    # Assume the payload size is the length specified
    size = event.length

    # If this is an index, modify for the size of the index
    if event.streamId == XED_INDEX_MARKER:
        logger.debug("Unexpected index %#06x.%d -- skipping assuming 24-bytes additional data, %d/%d entries",
                     event.streamId, event.packetType, event.length, event.length2)
        event.kind = XED_EVENT_INDEX
        size *= XED_INDEX_ENTRY_SIZE + XED_FRAME_INFO_SIZE
    elif event.streamId == num_streams:
        # Probably the index location packet, stop parsing
        raise XedEndOfStream(f"Reached stream number {event.streamId} at offset {event.fileOffset} "
                             "(probably the index location packet)")
    elif event.streamId > num_streams:
        raise XedInvalidDataError(f"Unexpected stream number {event.streamId} at offset {event.fileOffset}")
    elif event.timestamp != 0:
        # If we have a timestamp, read the frame info first
        event.frameInfo = xed_frame_info(xed_file)

    if event.length != event.length2:
        logger.debug("Event at %d has differing lengths %d|%d", event.fileOffset, event.length, event.length2)

    remaining = xed_file.size - xed_file.tell()
    if size > remaining:
        raise XedTruncatedError(f"Event at {event.fileOffset} declares {size} payload bytes, only {remaining} remain")

    if buffer is None:
        buffer = bytearray(size)

    view = memoryview(buffer).cast("B")
    readSize = min(size, len(view))
    xed_file.readinto(view[:readSize])

    # Skip what did not fit so the next event starts aligned
    if size > readSize:
        xed_file.skip(size - readSize)

    event.payload = view[:readSize]
    return event


def xed_read_event(reader: xed_reader, stream: int, index: int, buffer=None):
    if reader.closed:
        raise XedInvalidArgumentError("Reader is closed")

    indexEntry = xed_get_index_entry(reader, stream, index)

    reader.xed_file.seek(indexEntry.indexEntry.frame_file_offset)
    return read_event_at(reader.xed_file, reader.xed_header.num_streams, buffer)


def xed_iter_events(reader: xed_reader, stream: int = XED_STREAM_ALL, buffer=None):
    for index in range(xed_get_num_events(reader, stream)):
        try:
            yield xed_read_event(reader, stream, index, buffer)
        except XedEndOfStream as e:
            logger.info("Stopped reading: %s", e)
            return


def xed_scan_events(reader: xed_reader, buffer=None):
    """Walk the events linearly from the first one, index blocks included."""
    if reader.closed:
        raise XedInvalidArgumentError("Reader is closed")

    xed_file = reader.xed_file
    position = XED_HEADER_SIZE

    while position < reader.xed_header.index_file_offset:
        xed_file.seek(position)
        try:
            event = read_event_at(xed_file, reader.xed_header.num_streams, buffer)
        except XedEndOfStream as e:
            logger.info("Stopped reading: %s", e)
            return

        position = xed_file.tell()
        yield event
