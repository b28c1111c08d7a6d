# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Sample repository contents and test doubles shared by the tests."""

import asyncio
from pathlib import Path
from typing import Dict, List, Optional

from buildorch.models import Bundle, CompileOptions

SAMPLE_FILES: Dict[str, str] = {
    "src/core/dom.js": "export function closest() {}\n",
    "src/core/types.ts": "export type Id = string;\n",
    "src/components/foo/0.1/foo.js": (
        "import {closest} from '#core/dom';\n"
        "\n"
        "export class Foo {}\n"
    ),
    "src/components/foo/0.1/test/test-foo.js": (
        "import {Foo} from '../foo';\n"
        "\n"
        "describe('foo', () => {});\n"
    ),
    "src/components/bar/0.1/bar.js": (
        "import {CSS} from '../../../../build/bar-0.1.css';\n"
        "\n"
        "export class Bar {}\n"
    ),
    "src/components/bar/0.1/bar.css": ".bar { color: red; }\n",
    "src/components/bar/0.1/bar-helpers.js": "export const helper = 1;\n",
    "src/components/bar/0.1/test/test-bar.js": (
        "import {Bar} from '../bar';\n"
        "\n"
        "describe('bar', () => {});\n"
    ),
    "src/components/baz/0.1/baz.js": "export class Baz {}\n",
    "src/components/baz/0.1/test/test-core.js": (
        "import {closest} from '#core/dom';\n"
        "\n"
        "describe('core', () => {});\n"
    ),
    "test/unit/foo-test.js": (
        "import {Foo} from '../../src/components/foo/0.1/foo.js';\n"
        "\n"
        "describe('foo', () => {});\n"
    ),
}

SAMPLE_ALIASES = {
    "#core/*": ["./src/core/*"],
    "#testing/*": ["./testing/*"],
}

SAMPLE_COMPONENTS: List[Dict[str, object]] = [
    {"name": "foo", "version": "0.1", "minified_name": "foo-0.1"},
    {"name": "bar", "version": "0.1", "minified_name": "bar-0.1", "has_css": True},
    {"name": "baz", "version": "0.1"},
]

SAMPLE_UNIT_TEST_PATHS = [
    "src/components/**/test/*.js",
    "test/unit/*.js",
]


def write_files(root: Path, files: Dict[str, str]) -> None:
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


class FakeCompiler:
    """Compile operation controlled by the test.

    Each call records the bundle name and waits for release() unless
    auto_release is set. fail_with makes the next calls raise.
    """

    def __init__(self, auto_release: bool = False):
        self.calls: List[str] = []
        self.options: List[CompileOptions] = []
        self.auto_release = auto_release
        self.fail_with: Optional[BaseException] = None
        self._gate: Optional[asyncio.Event] = None
        self.started: Optional[asyncio.Event] = None

    def _events(self) -> None:
        if self._gate is None:
            self._gate = asyncio.Event()
            self.started = asyncio.Event()

    async def compile(self, bundle: Bundle, options: CompileOptions) -> None:
        self._events()
        assert self._gate is not None and self.started is not None
        self.calls.append(bundle.name)
        self.options.append(options)
        self.started.set()
        if not self.auto_release:
            await self._gate.wait()
            self._gate.clear()
        if self.fail_with is not None:
            raise self.fail_with

    def release(self) -> None:
        self._events()
        assert self._gate is not None
        self._gate.set()


async def settle(rounds: int = 5) -> None:
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)
