# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for BuildOrchestratorService.

Tests cover:
- Component wiring from one Config
- Lazy builds through the request routers
- Test selection with injected and git-derived change sets
- File watcher lifecycle
"""

import asyncio
from unittest.mock import Mock

import pytest
import yaml

from buildorch.config import Config
from buildorch.errors import BuildError, ConfigurationError
from buildorch.git_changes import ChangeSet
from buildorch.models import BuildState, SelectionOutcome
from buildorch.run_config import RunConfig
from buildorch.service import BuildOrchestratorService

from .helpers import SAMPLE_COMPONENTS, SAMPLE_UNIT_TEST_PATHS, FakeCompiler

FOO_TESTS = (
    "src/components/foo/0.1/test/test-foo.js",
    "test/unit/foo-test.js",
)


@pytest.fixture
def config(sample_repo):
    config_path = sample_repo / ".buildorch.yml"
    with open(config_path, "w") as f:
        yaml.dump(
            {
                "components": SAMPLE_COMPONENTS,
                "js_bundles": [{"name": "amp-shadow.js", "src_dir": "src/shadow"}],
                "unit_test_paths": SAMPLE_UNIT_TEST_PATHS,
            },
            f,
        )
    return Config(config_path=config_path)


@pytest.fixture
def compiler():
    return FakeCompiler(auto_release=True)


@pytest.fixture
def make_service(config, sample_repo, compiler):
    services = []

    def factory(**kwargs):
        kwargs.setdefault("compile_fn", compiler.compile)
        service = BuildOrchestratorService(config, sample_repo, **kwargs)
        services.append(service)
        return service

    yield factory
    for service in services:
        service.shutdown()


class TestServiceInitialization:
    """Tests for wiring and startup validation."""

    def test_initialization(self, make_service):
        service = make_service()

        assert service.components.names() == ["foo", "bar", "baz"]
        assert service.js_bundles.names() == ["amp-shadow.js"]
        assert len(service.routers) == 2
        assert service.style_outputs == {
            "src/components/bar/0.1/bar.css": "build/bar-0.1.css.js"
        }

    def test_missing_alias_table_is_fatal(self, config, sample_repo, compiler):
        (sample_repo / "tsconfig.base.json").unlink()

        with pytest.raises(ConfigurationError):
            BuildOrchestratorService(config, sample_repo, compile_fn=compiler.compile)

    def test_invalid_manifest_is_fatal(self, tmp_path, sample_repo, compiler):
        config_path = tmp_path / "config.yml"
        with open(config_path, "w") as f:
            yaml.dump(
                {"components": [{"name": "a", "version": "0.1"}, {"name": "a", "version": "0.2"}]},
                f,
            )

        with pytest.raises(ConfigurationError, match="Duplicate"):
            BuildOrchestratorService(
                Config(config_path=config_path), sample_repo, compile_fn=compiler.compile
            )


class TestBuildPath:
    """Tests for lazy builds through the service."""

    def test_unminified_component(self, make_service, compiler):
        service = make_service()

        assert asyncio.run(service.build_path("/dist/v0/foo.max.js")) == "foo"
        assert compiler.calls == ["foo"]

    def test_minified_alias(self, make_service, compiler):
        service = make_service(minified=True)

        assert asyncio.run(service.build_path("/dist/v0/foo-0.1.js")) == "foo"
        assert compiler.options[0].minify is True

    def test_esm(self, make_service, compiler):
        service = make_service(esm=True)

        assert asyncio.run(service.build_path("/dist/v0/bar.mjs")) == "bar"

    def test_js_bundle(self, make_service, compiler):
        service = make_service()

        assert asyncio.run(service.build_path("/dist/amp-shadow.js")) == "amp-shadow.js"

    def test_pass_through(self, make_service, compiler):
        service = make_service()

        assert asyncio.run(service.build_path("/dist/v0/unknown.max.js")) is None
        assert asyncio.run(service.build_path("/index.html")) is None
        assert compiler.calls == []

    def test_build_error_propagates(self, make_service, compiler):
        compiler.fail_with = RuntimeError("boom")
        service = make_service()

        with pytest.raises(BuildError, match="foo"):
            asyncio.run(service.build_path("/dist/v0/foo.max.js"))
        assert service.components.get("foo").state == BuildState.UNBUILT

    def test_bundle_status(self, make_service):
        service = make_service()
        asyncio.run(service.build_path("/dist/v0/foo.max.js"))

        status = service.bundle_status()

        foo = next(entry for entry in status["components"] if entry["name"] == "foo")
        bar = next(entry for entry in status["components"] if entry["name"] == "bar")
        assert foo["state"] == "built"
        assert foo["watched"] is True
        assert foo["compile_count"] == 1
        assert bar["state"] == "unbuilt"
        assert status["js_bundles"][0]["name"] == "amp-shadow.js"


class TestSelectTests:
    """Tests for change-driven selection through the service."""

    def test_injected_change_set(self, make_service):
        service = make_service()

        selection = service.select_tests(
            change_set=ChangeSet(["src/components/foo/0.1/foo.js"])
        )

        assert selection.outcome == SelectionOutcome.SELECTED
        assert selection.tests == FOO_TESTS

    def test_stylesheet_change(self, make_service):
        service = make_service()

        selection = service.select_tests(
            change_set=ChangeSet(["src/components/bar/0.1/bar.css"])
        )

        assert selection.tests == ("src/components/bar/0.1/test/test-bar.js",)

    def test_stylesheet_edges_rescanned_per_selection(self, make_service, sample_repo):
        """Sibling script edits are seen by the next selection."""
        service = make_service()
        change_set = ChangeSet(["src/components/bar/0.1/bar.css"])
        first = service.select_tests(change_set=change_set)

        component_dir = sample_repo / "src" / "components" / "bar" / "0.1"
        (component_dir / "bar-helpers.js").write_text(
            "import {CSS} from '../../../../build/bar-0.1.css';\n"
        )
        (component_dir / "test" / "test-helpers.js").write_text(
            "import {helper} from '../bar-helpers';\n"
        )
        second = service.select_tests(change_set=change_set)

        assert first.tests == ("src/components/bar/0.1/test/test-bar.js",)
        assert second.tests == (
            "src/components/bar/0.1/test/test-bar.js",
            "src/components/bar/0.1/test/test-helpers.js",
        )

    def test_change_set_from_git(self, make_service):
        git_repository = Mock()
        git_repository.main_baseline.return_value = "abc1234"
        git_repository.diff_name_only.return_value = ["src/components/foo/0.1/foo.js"]
        service = make_service(git_repository=git_repository)

        selection = service.select_tests(RunConfig(local_changes=True, ci=True))

        git_repository.main_baseline.assert_called_once_with(ci=True)
        git_repository.diff_name_only.assert_called_once_with("abc1234")
        assert selection.tests == FOO_TESTS

    def test_ci_thresholds_from_config(self, make_service):
        service = make_service()
        selector = service.selector_for(RunConfig(ci=True), ChangeSet([]))

        assert selector.large_refactor_threshold == 50
        assert selector.test_file_count_threshold == 20
        assert selector.local_dev is False

    def test_test_files(self, make_service):
        git_repository = Mock()
        git_repository.main_baseline.return_value = "abc1234"
        git_repository.diff_name_only.return_value = ["src/components/baz/0.1/baz.js"]
        service = make_service(git_repository=git_repository)

        assert service.test_files(RunConfig(local_changes=True)) == []
        assert len(service.test_files(RunConfig())) == 4


class TestWatching:
    """Tests for the file watcher lifecycle."""

    @pytest.mark.slow
    def test_start_watching_and_shutdown(self, make_service):
        service = make_service()

        async def scenario():
            watcher = service.start_watching()
            assert service.start_watching() is watcher
            assert watcher.is_running()
            return watcher

        watcher = asyncio.run(scenario())
        service.shutdown()

        watcher._observer.join(timeout=5.0)
        assert not watcher.is_running()
