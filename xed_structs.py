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


import os

from xed_errors import XedInvalidMagicError, XedTruncatedError, XedInvalidDataError

XED_TAG = b"EVENTS1\x00"
XED_HEADER_SIZE = 24
XED_EVENT_HEADER_SIZE = 24
XED_INDEX_ENTRY_SIZE = 24
XED_FRAME_INFO_SIZE = 24
XED_UNKNOWN_EVENT_SIZE = 24
XED_INDEX_MARKER = 0xffff
SIZE_UINT_64 = 8

XED_EVENT_DATA = "data"
XED_EVENT_INDEX = "index"


class xed_cursor:
    """Position-tracking reads over a seekable binary source."""

    def __init__(self, source):
        self.source = source
        self.source.seek(0, os.SEEK_END)
        self.size = self.source.tell()
        self.source.seek(0)

    def tell(self):
        return self.source.tell()

    def seek(self, offset):
        self.source.seek(offset)

    def read(self, num_bytes):
        position = self.source.tell()
        data = self.source.read(num_bytes)
        if len(data) != num_bytes:
            raise XedTruncatedError(f"Expected {num_bytes} bytes at offset {position}, only {len(data)} available")
        return data

    def readinto(self, view):
        position = self.source.tell()
        count = self.source.readinto(view)
        if count is None or count != len(view):
            raise XedTruncatedError(f"Expected {len(view)} bytes at offset {position}, only {count or 0} available")
        return count

    def read_int(self, num_bytes, byteorder="little"):
        return int.from_bytes(self.read(num_bytes), byteorder=byteorder)

    def skip(self, num_bytes):
        position = self.source.tell()
        if position + num_bytes > self.size:
            raise XedTruncatedError(f"Cannot skip {num_bytes} bytes at offset {position}, file is {self.size} bytes")
        self.source.seek(num_bytes, os.SEEK_CUR)


class xed_header:
    def __init__(self, xed_file):
        self.filetype = xed_file.read(8)                 # @ 0 "EVENTS1\0"
        self.version = xed_file.read_int(4)              # @ 8 = 3
        self.num_streams = xed_file.read_int(4)          # @12 = 5
        self.index_file_offset = xed_file.read_int(8)    # @16 File offset of the trailer
                                                         # @24 <end>


def read_header(xed_file):
    xed_file.seek(0)
    header = xed_header(xed_file)

    if header.filetype != XED_TAG:
        raise XedInvalidMagicError(f"File header not found! Expected {XED_TAG!r}, got {header.filetype!r}")

    return header


class xed_index_entry_t:
    def __init__(self, xed_file=None):
        if xed_file is None:
            self.frame_file_offset = 0
            self.frame_timestamp = 0
            self.data_size = 0
            self.data_size2 = 0
            return

        self.frame_file_offset = xed_file.read_int(8)  # @ 0 (e.g. 0x000000004c002bfc, can point to first frame)
        self.frame_timestamp = xed_file.read_int(8)    # @ 8 (e.g. 0x000000038f84d534, or 0 if none)
        self.data_size = xed_file.read_int(4)          # @16 (e.g. 614400)
        self.data_size2 = xed_file.read_int(4)         # @20 usually equal to data_size


# Frame information, the only big-endian structure in the file
class xed_frame_info:
    def __init__(self, xed_file=None, size=XED_FRAME_INFO_SIZE):
        self.present = xed_file is not None and size > 0
        self._unknown1 = 0
        self._unknown2 = 0
        self._unknown3 = 0
        self._unknown4 = 0
        self.width = 0
        self.height = 0
        self.sequenceNumber = 0
        self._unknown5 = 0
        self.timestamp = 0

        if not self.present:
            return

        # Records shorter than 24 bytes are zero-padded, longer ones have their tail skipped
        raw = xed_file.read(min(size, XED_FRAME_INFO_SIZE)).ljust(XED_FRAME_INFO_SIZE, b"\x00")
        if size > XED_FRAME_INFO_SIZE:
            xed_file.skip(size - XED_FRAME_INFO_SIZE)

        self._unknown1 = int.from_bytes(raw[0:2], byteorder="big")         # @ 0 ? = 1
        self._unknown2 = int.from_bytes(raw[2:4], byteorder="big")         # @ 2 ? = 0
        self._unknown3 = int.from_bytes(raw[4:6], byteorder="big")         # @ 4 ? = 1
        self._unknown4 = int.from_bytes(raw[6:8], byteorder="big")         # @ 6 ? = 1
        self.width = int.from_bytes(raw[8:10], byteorder="big")            # @ 8 Width (= 640)
        self.height = int.from_bytes(raw[10:12], byteorder="big")          # @10 Height (= 480)
        self.sequenceNumber = int.from_bytes(raw[12:16], byteorder="big")  # @12 Frame sequence number (e.g. = 0x00000f86)
        self._unknown5 = int.from_bytes(raw[16:20], byteorder="big")       # @16 ? = 0
        self.timestamp = int.from_bytes(raw[20:24], byteorder="big")       # @20 Timestamp (e.g. = 0x0e26da91)
                                                                           # @24 <end>

    def __bool__(self):
        return self.present


class xed_end_stream_info:
    def __init__(self, xed_file, iteration_num, diagnostics):
        self.fileOffset = xed_file.tell()

        self._unknown1 = xed_file.read_int(2)          # @  0 = 0xffff
        self._unknown2 = xed_file.read_int(2)          # @  2 = 0xffff
        if self._unknown1 != 0xffff or self._unknown2 != 0xffff:
            raise XedInvalidDataError(f"End stream info #{iteration_num} does not start with expected 0xffff 0xffff")

        self.stream_number = xed_file.read_int(2)      # @  4 = 0/1/2/3/4
        if self.stream_number != iteration_num:
            diagnostics.warning(f"End stream info #{iteration_num} is not for the expected stream (={self.stream_number})")

        self.extraPerIndexEntry = xed_file.read_int(2) # @  6 Length of xed_frame_info in index = 24, 0 in trimmed files
        self.totalIndexEntries = xed_file.read_int(4)  # @  8 Total number of index entries = 2078 / 2
        self.frameSize = xed_file.read_int(4)          # @ 12 Size of frame (e.g. = 614400 / 0)
        self.maxIndexEntries = xed_file.read_int(4)    # @ 16 Max entries per index = 1024
        self.numIndexes = xed_file.read_int(4)         # @ 20 Number of indexes = 3 / 1

        self.event_0 = xed_index_entry_t(xed_file)     # @ 24 Index entry for the initial data event
        self.event_1 = xed_index_entry_t(xed_file)     # @ 48 Index entry for the empty event

        self._unknownEvent0 = xed_file.read(XED_UNKNOWN_EVENT_SIZE)  # @ 72
        self._unknownEvent1 = xed_file.read(XED_UNKNOWN_EVENT_SIZE)  # @ 96

        # @120 Two frame information blocks, missing entirely when extraPerIndexEntry = 0
        if self.extraPerIndexEntry > 0:
            xed_file.skip(2 * self.extraPerIndexEntry)

        # (numIndexes *) File offset of xed_stream_index structures, resolved by load_stream_index()
        self.indexTableOffset = xed_file.tell()
        xed_file.skip(self.numIndexes * SIZE_UINT_64)

        self._unknown11 = xed_file.read_int(4)         # ? timestamp/flags (e.g. = 0x8ad51914)
        self.recordSize = xed_file.tell() - self.fileOffset

        if self.numIndexes * self.maxIndexEntries < self.totalIndexEntries:
            diagnostics.warning(f"Stream {self.stream_number} declares {self.totalIndexEntries} index entries "
                                f"but only {self.numIndexes} x {self.maxIndexEntries} fit in its indexes")


# Index (24 bytes), followed by numEntries xed_index_entry_t and optionally numEntries xed_frame_info
class xed_stream_index:
    def __init__(self, xed_file, index_num, stream_number, diagnostics):
        self.packetType = xed_file.read_int(2)      # @0 = 0xffff
        if self.packetType != XED_INDEX_MARKER:
            raise XedInvalidDataError(f"Index #{index_num} for stream #{stream_number} does not start with expected 0xffff")

        self._unknown1 = xed_file.read_int(2)       # @2 = 0
        self.numEntries = xed_file.read_int(4)      # @4 (e.g. = 1024 | 1024 | ... | 30)
        self._unknown2 = xed_file.read_int(4)       # @8 varies (e.g. = 0xf934b72c)
        self._unknown3 = xed_file.read_int(4)       # @12 = 0
        self._unknown4 = xed_file.read_int(4)       # @16 = 0
        self._unknown5 = xed_file.read_int(4)       # @20 = 0
                                                    # @24 <end>

        if self._unknown1 or self._unknown3 or self._unknown4 or self._unknown5:
            diagnostics.warning(f"Index #{index_num} for stream #{stream_number} has nonzero reserved fields "
                                f"({self._unknown1:#x}, {self._unknown3:#x}, {self._unknown4:#x}, {self._unknown5:#x})")


# Reader type for indexing the file
class xed_index:
    def __init__(self, streamId=None):
        self.streamId = streamId
        self.indexEntry = xed_index_entry_t()
        self.frameInfo = xed_frame_info()


class xed_event:
    def __init__(self, xed_file):
        self.fileOffset = xed_file.tell()
        self.streamId = xed_file.read_int(2)    # uint16_t @ 0 Stream ID
        self.packetType = xed_file.read_int(2)  # uint16_t @ 2 ? Packet type / flags
        self.length = xed_file.read_int(4)      # uint32_t @ 4 Length of payload (a xed_frame_info may precede it)
        self.timestamp = xed_file.read_int(8)   # uint64_t @ 8 Timestamp
        self._unknown1 = xed_file.read_int(4)   # uint32_t @16 ? Unknown value
        self.length2 = xed_file.read_int(4)     # uint32_t @20 Usually, but not always, the same as length

        self.kind = XED_EVENT_DATA
        self.frameInfo = xed_frame_info()
        self.payload = memoryview(b"")
