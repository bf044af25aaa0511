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

import argparse
import logging
import os
import sys
import time
from datetime import datetime

import cv2
import numpy as np
from PIL import Image

from xed_errors import XedError
from xed_reader import XED_STREAM_ALL, xed_iter_events, xed_reader
from xed_structs import XED_EVENT_INDEX

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 1024 * 768 * 3
RGB_MAX = 255
V_MAX = 4096
DEPTH_MASK = 0x0fff
DEPTH_NEAR = 850
DEPTH_FAR = 4000
DEPTH_EVERY = 30
COLOR_EVERY = 10


def colorize_depth(buffer, width, height, near=DEPTH_NEAR, far=DEPTH_FAR):
    """Map 16-bit big-endian depth samples onto a six segment hue ramp, returns RGB."""
    depth = np.frombuffer(buffer, dtype=">u2", count=width * height).reshape(height, width)
    v = (depth & DEPTH_MASK).astype(np.int64)

    # Stretch
    v = np.where(v < near, 0, (v - near) * V_MAX // (far - near))
    v = np.clip(v, 0, V_MAX - 1)

    z = (RGB_MAX * (v % (V_MAX / 6 + 1)) / (V_MAX / 6 + 1)).astype(np.int64)
    segment = (v * 6) // V_MAX
    full = np.full_like(v, RGB_MAX)
    zero = np.zeros_like(v)

    r = np.choose(segment, [full, full - z, zero, zero, z, full])
    g = np.choose(segment, [z, full, full, full - z, zero, z])
    b = np.choose(segment, [zero, zero, z, full, full, full])

    return np.dstack((r, g, b)).astype(np.uint8)


def write_depth_image(buffer, width, height, filename):
    img_rgb = colorize_depth(buffer, width, height)
    cv2.imwrite(filename, cv2.cvtColor(img_rgb, cv2.COLOR_RGB2BGR))
    return img_rgb


def extract_image_from_bytes(buffer, width, height, filename):
    img = Image.frombytes("L", (width, height), bytes(buffer[:width * height]))  # Open image as grayscale from bytes
    img_array = np.array(img)
    img_rgb = cv2.cvtColor(img_array, cv2.COLOR_BayerGRBG2BGR)                  # Conversion to RGB
    cv2.imwrite(filename, img_rgb)
    return img_rgb


def xed_decode(filepath, store_path="", verbose=True, depth_every=DEPTH_EVERY, color_every=COLOR_EVERY,
               buffer_size=DEFAULT_BUFFER_SIZE):
    """Decode snapshots of the depth and colour frames of an XED file.

    Returns the paths of the images written to store_path.
    """
    start_time = time.perf_counter()
    start_date_time = datetime.now()

    if not os.path.isfile(filepath):
        raise FileNotFoundError(f"File not found: {filepath}")

    buffer = bytearray(buffer_size)
    written = []
    count_depth, count_color = 0, 0

    with xed_reader(filepath) as reader:
        if verbose:
            print("XED,packet,stream,type,len,time,unknown,len2"
                  ",unk1,unk2,unk3,unk4,width,height,seq,unk5,time")

        for packet, frame in enumerate(xed_iter_events(reader, XED_STREAM_ALL, buffer)):
            frameInfo = frame.frameInfo

            if verbose:
                row = (f"XED,{packet},{frame.streamId},{frame.packetType},{frame.length},"
                       f"{frame.timestamp},{frame._unknown1:#x},{frame.length2}")
                if frame.kind != XED_EVENT_INDEX:
                    row += (f",{frameInfo._unknown1},{frameInfo._unknown2},{frameInfo._unknown3},"
                            f"{frameInfo._unknown4},{frameInfo.width},{frameInfo.height},"
                            f"{frameInfo.sequenceNumber},{frameInfo._unknown5},{frameInfo.timestamp}")
                else:
                    row += ",,,,,,,,,"
                print(row)

            width, height = frameInfo.width, frameInfo.height
            if frame.kind == XED_EVENT_INDEX or width == 0 or height == 0:
                continue
            # Payload cut short by the buffer
            if len(frame.payload) < frame.length:
                logger.warning("Skipping frame %d: %d byte payload exceeds %d byte buffer",
                               packet, frame.length, len(buffer))
                continue

            if frame.length == width * height * 2:      # Depth data, 16-bit big-endian
                if count_depth % depth_every == 0:
                    filename = os.path.join(store_path, f"depth-{count_depth // depth_every}.bmp")
                    write_depth_image(frame.payload, width, height, filename)
                    written.append(filename)
                count_depth += 1

            elif frame.length == width * height:        # Colour data in GRBG bayer pattern
                if count_color % color_every == 0:
                    filename = os.path.join(store_path, f"color-{count_color // color_every}.bmp")
                    extract_image_from_bytes(frame.payload, width, height, filename)
                    written.append(filename)
                count_color += 1

    finish_time = time.perf_counter()
    logger.info("XED decoded: %d depth frames, %d colour frames, %d images (start %s, finish %s, elapsed %.3fs)",
                count_depth, count_color, len(written), start_date_time, datetime.now(), finish_time - start_time)
    if store_path != "":
        logger.info("Images stored at %s", store_path)

    return written


def positive_int(value):
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def main(argv=None):
    parser = argparse.ArgumentParser(prog="xed-decode", description="XED File Format Parser")
    parser.add_argument("input", help="input .xed file")
    parser.add_argument("-o", "--output", default="", help="directory for the decoded images")
    parser.add_argument("-v", "--verbose", action="store_true", help="print a CSV listing of every packet")
    parser.add_argument("--depth-every", type=positive_int, default=DEPTH_EVERY, help="keep every Nth depth frame")
    parser.add_argument("--color-every", type=positive_int, default=COLOR_EVERY, help="keep every Nth colour frame")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    logger.info("Processing: %s", args.input)
    try:
        if args.output:
            os.makedirs(args.output, exist_ok=True)
        xed_decode(args.input, args.output, verbose=args.verbose,
                   depth_every=args.depth_every, color_every=args.color_every)
    except (OSError, XedError) as e:
        logger.error("Problem reading file %s: %s", args.input, e)
        return 1
    logger.info("End processing")
    return 0


if __name__ == "__main__":
    sys.exit(main())
