# /*
# Copyright 2026 The Elemental E2E Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""elemental_e2e - Elemental CAPI end-to-end bootstrap validation package."""

from __future__ import annotations

import io
import logging
import threading
from contextlib import contextmanager

from rich.console import Console


class ThreadAwareConsole:
    """Console proxy writing to a per-thread buffer while one is active.

    Node workers run in a thread pool; each buffers its output so that a
    node's lines are printed together once the phase barrier is reached.
    """

    def __init__(self, real_console: Console) -> None:
        object.__setattr__(self, "_real", real_console)
        object.__setattr__(self, "_local", threading.local())

    def __getattr__(self, name: str):
        stack = getattr(self._local, "stack", None)
        target = stack[-1] if stack else self._real
        return getattr(target, name)

    @contextmanager
    def buffered(self):
        """Capture the console output of the current thread.

        Buffers nest; the buffer keeps the width of the real console.
        """
        buf = io.StringIO()
        stack = self._local.__dict__.setdefault("stack", [])
        stack.append(Console(file=buf, width=self._real.width, highlight=False))
        try:
            yield buf
        finally:
            stack.pop()


console = ThreadAwareConsole(Console(stderr=True))
logger = logging.getLogger("elemental_e2e")
