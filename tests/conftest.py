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

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from xed_fixtures import build_xed, event  # noqa: E402


@pytest.fixture
def two_stream_xed():
    """Two streams of three frames each, interleaved, declared in reverse order."""
    events = [
        event(1, b"c0" * 8, timestamp=100, sequence=10),
        event(0, b"d0" * 16, timestamp=101, sequence=20),
        event(0, b"d1" * 16, timestamp=102, sequence=21),
        event(1, b"c1" * 8, timestamp=103, sequence=11),
        event(1, b"c2" * 8, timestamp=104, sequence=12),
        event(0, b"d2" * 16, timestamp=105, sequence=22),
    ]
    return build_xed(events, num_streams=2, stream_order=[1, 0])

