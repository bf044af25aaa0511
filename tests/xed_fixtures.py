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

"""Builds small XED files in memory for the tests."""

import struct

XED_TAG = b"EVENTS1\x00"
TRAILER_TAIL = 0x8ad51914
BLOCK_UNKNOWN = 0xf934b72c


def frame_info_bytes(width=640, height=480, sequence=1, timestamp=0x0e26da91, unknown=(1, 0, 1, 1), unknown5=0):
    return struct.pack(">HHHHHHIII", *unknown, width, height, sequence, unknown5, timestamp)


def event_header_bytes(stream, length, timestamp=0, packet_type=0, unknown=0, length2=None):
    if length2 is None:
        length2 = length
    return struct.pack("<HHIQII", stream, packet_type, length, timestamp, unknown, length2)


def index_entry_bytes(offset, timestamp=0, size=0, size2=None):
    if size2 is None:
        size2 = size
    return struct.pack("<QQII", offset, timestamp, size, size2)


def event(stream, payload=b"", timestamp=0, length2=None, **frame_info):
    return {"stream": stream, "payload": payload, "timestamp": timestamp, "length2": length2,
            "frame_info": frame_info}


def build_xed(events, num_streams, extra=24, max_entries=1024, header_streams=None, trailer_count=None,
              stream_order=None, tag=XED_TAG):
    """Lay out header, events, per-stream index blocks and trailer.

    Returns (data, offsets) where offsets[stream] lists the file offset of
    every event of that stream in file order.
    """
    data = bytearray(24)
    entries = {s: [] for s in range(num_streams)}

    for ev in events:
        timestamp = ev["timestamp"]
        info = frame_info_bytes(**ev["frame_info"]) if timestamp else bytes(24)
        entries[ev["stream"]].append((len(data), timestamp, len(ev["payload"]), info))
        data += event_header_bytes(ev["stream"], len(ev["payload"]), timestamp, length2=ev["length2"])
        if timestamp:
            data += info
        data += ev["payload"]

    block_offsets = {}
    for s in range(num_streams):
        block_offsets[s] = []
        for start in range(0, len(entries[s]), max_entries):
            chunk = entries[s][start:start + max_entries]
            block_offsets[s].append(len(data))
            data += struct.pack("<HHIIIII", 0xffff, 0, len(chunk), BLOCK_UNKNOWN, 0, 0, 0)
            for offset, timestamp, size, _ in chunk:
                data += index_entry_bytes(offset, timestamp, size)
            if extra:
                for _, _, _, info in chunk:
                    data += info[:extra].ljust(extra, b"\x00")

    trailer_offset = len(data)
    order = list(range(num_streams)) if stream_order is None else stream_order
    data += struct.pack("<H", len(order) if trailer_count is None else trailer_count)

    for s in order:
        stream_entries = entries.get(s, [])
        blocks = block_offsets.get(s, [])
        bookkeeping = [index_entry_bytes(offset, timestamp, size) for offset, timestamp, size, _ in stream_entries[:2]]
        bookkeeping += [bytes(24)] * (2 - len(bookkeeping))
        frame_size = stream_entries[-1][2] if stream_entries else 0

        data += struct.pack("<HHHHIIII", 0xffff, 0xffff, s, extra, len(stream_entries), frame_size,
                            max_entries, len(blocks))
        data += b"".join(bookkeeping)
        data += b"\xaa" * 24 + b"\xbb" * 24
        data += b"\x00" * (2 * extra)
        for offset in blocks:
            data += struct.pack("<Q", offset)
        data += struct.pack("<I", TRAILER_TAIL)

    if header_streams is None:
        header_streams = num_streams
    data[0:24] = struct.pack("<8sIIQ", tag, 3, header_streams, trailer_offset)

    return bytes(data), {s: [entry[0] for entry in entries[s]] for s in entries}


def patch(data, offset, value):
    data = bytearray(data)
    data[offset:offset + len(value)] = value
    return bytes(data)
