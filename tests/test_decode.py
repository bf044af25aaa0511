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

import os
import struct

import pytest

np = pytest.importorskip("numpy")
cv2 = pytest.importorskip("cv2")

from xed_decode import colorize_depth, main, xed_decode  # noqa: E402
from xed_fixtures import build_xed, event  # noqa: E402


def _depth_bytes(values):
    return struct.pack(f">{len(values)}H", *values)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (0, (255, 0, 0)),           # below the near plane
        (849, (255, 0, 0)),
        (0xf000, (255, 0, 0)),      # upper 4 bits are masked off
        (4000, (255, 252, 255)),    # clamped to the last segment
        (0x1000 | 4000, (255, 252, 255)),
    ],
)
def test_colorize_depth_known_values(raw: int, expected) -> None:
    rgb = colorize_depth(_depth_bytes([raw]), 1, 1)
    assert rgb.shape == (1, 1, 3)
    assert rgb.dtype == np.uint8
    assert tuple(int(c) for c in rgb[0, 0]) == expected


def test_colorize_depth_walks_through_segments() -> None:
    # 1112 + k * 525 lands in the middle of segment k after stretching
    values = [1112 + k * 525 for k in range(6)]
    rgb = colorize_depth(_depth_bytes(values), 6, 1)
    pixels = [tuple(int(c) for c in rgb[0, k]) for k in range(6)]
    assert pixels[0][0] == 255 and pixels[0][2] == 0
    assert pixels[1][1] == 255 and pixels[1][2] == 0
    assert pixels[2][0] == 0 and pixels[2][1] == 255
    assert pixels[3][0] == 0 and pixels[3][2] == 255
    assert pixels[4][1] == 0 and pixels[4][2] == 255
    assert pixels[5][0] == 255 and pixels[5][2] == 255


def _capture(tmp_path):
    depth = _depth_bytes([900 + i * 100 for i in range(16)])
    color = bytes(range(0, 160, 10))
    events = [
        event(0, b"\x00" * 292),    # initial data events carry no frame info
        event(1, b"\x00" * 292),
        event(0, depth, timestamp=10, width=4, height=4, sequence=1),
        event(1, color, timestamp=11, width=4, height=4, sequence=1),
        event(0, depth, timestamp=12, width=4, height=4, sequence=2),
        event(1, color, timestamp=13, width=4, height=4, sequence=2),
    ]
    data, _ = build_xed(events, num_streams=2)
    path = tmp_path / "capture.xed"
    path.write_bytes(data)
    return path


def test_decode_writes_snapshots(tmp_path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    written = xed_decode(str(_capture(tmp_path)), str(out), verbose=False, depth_every=1, color_every=2)

    names = sorted(os.path.basename(p) for p in written)
    assert names == ["color-0.bmp", "depth-0.bmp", "depth-1.bmp"]
    for name in names:
        image = cv2.imread(str(out / name))
        assert image is not None
        assert image.shape == (4, 4, 3)


def test_decode_verbose_lists_packets(tmp_path, capsys) -> None:
    out = tmp_path / "out"
    out.mkdir()
    xed_decode(str(_capture(tmp_path)), str(out), verbose=True)
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("XED,packet,stream,type,len,time")
    assert len(lines) == 7
    assert lines[3].startswith("XED,2,0,0,32,10,")


def test_decode_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        xed_decode(str(tmp_path / "missing.xed"))


def test_cli(tmp_path) -> None:
    out = tmp_path / "images"
    assert main([str(_capture(tmp_path)), "-o", str(out), "--depth-every", "1"]) == 0
    assert (out / "depth-0.bmp").exists()
    assert (out / "depth-1.bmp").exists()
    assert (out / "color-0.bmp").exists()


def test_cli_reports_bad_files(tmp_path) -> None:
    bad = tmp_path / "bad.xed"
    bad.write_bytes(b"NOTXED\x00\x00" + bytes(64))
    assert main([str(bad)]) == 1
    assert main([str(tmp_path / "missing.xed")]) == 1


@pytest.mark.parametrize("option", ["--depth-every", "--color-every"])
@pytest.mark.parametrize("value", ["0", "-3", "two"])
def test_cli_rejects_non_positive_cadence(tmp_path, option: str, value: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([str(_capture(tmp_path)), option, value])
    assert excinfo.value.code == 2
