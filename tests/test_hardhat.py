"""Tests for the Hardhat plugin."""

from __future__ import annotations

import pytest

from abiforge.errors import BuildCommandError, PrerequisiteError, ResolutionError
from abiforge.models import FileEvent
from abiforge.plugins import hardhat as hardhat_mod
from abiforge.plugins.hardhat import (
    Commands,
    HardhatPlugin,
    from_config,
    resolve_commands,
)

NO_COMMANDS = Commands(clean=False, build=False, rebuild=False)


@pytest.fixture
def ran(monkeypatch):
    """Record run_command calls instead of executing anything."""
    calls: list[tuple[str, str, bool]] = []

    def _fake(command, cwd, *, forward_output=False):
        calls.append((command, str(cwd), forward_output))
        return ""

    monkeypatch.setattr(hardhat_mod, "run_command", _fake)
    return calls


# ── Artifact scan ───────────────────────────────────────────────

class TestContracts:
    def test_empty_abi_excluded_and_prefix_applied(self, hardhat_project):
        hardhat_project.artifact("contracts/Token.sol/Token.json", "Token")
        hardhat_project.artifact("contracts/IToken.sol/IToken.json", "IToken", abi=[])
        plugin = HardhatPlugin(
            project=str(hardhat_project.path), name_prefix="Hh", commands=NO_COMMANDS
        )
        contracts = plugin.contracts()
        assert [c.name for c in contracts] == ["HhToken"]
        assert contracts[0].address is None
        assert contracts[0].abi[0]["name"] == "balanceOf"

    def test_default_excludes(self, hardhat_project):
        hardhat_project.artifact("contracts/Token.sol/Token.json", "Token")
        hardhat_project.artifact("contracts/Token.sol/Token.dbg.json", "TokenDbg")
        hardhat_project.artifact("build-info/abc123.json", "BuildInfo")
        plugin = HardhatPlugin(project=str(hardhat_project.path), commands=NO_COMMANDS)
        assert [c.name for c in plugin.contracts()] == ["Token"]

    def test_custom_include(self, hardhat_project):
        hardhat_project.artifact("contracts/A.sol/A.json", "A")
        hardhat_project.artifact("contracts/B.sol/B.json", "B")
        plugin = HardhatPlugin(
            project=str(hardhat_project.path), include=["A.json"], commands=NO_COMMANDS
        )
        assert [c.name for c in plugin.contracts()] == ["A"]

    def test_results_sorted_by_path(self, hardhat_project):
        hardhat_project.artifact("contracts/Z.sol/Z.json", "Z")
        hardhat_project.artifact("contracts/A.sol/A.json", "A")
        plugin = HardhatPlugin(project=str(hardhat_project.path), commands=NO_COMMANDS)
        assert [c.name for c in plugin.contracts()] == ["A", "Z"]

    def test_missing_artifacts_dir(self, tmp_path):
        (tmp_path / "p").mkdir()
        plugin = HardhatPlugin(project=str(tmp_path / "p"), commands=NO_COMMANDS)
        with pytest.raises(ResolutionError, match="Artifacts not found"):
            plugin.contracts()

    def test_unreadable_artifact_aborts(self, hardhat_project):
        hardhat_project.artifact("contracts/A.sol/A.json", "A")
        bad = hardhat_project.path / "artifacts" / "contracts" / "B.sol" / "B.json"
        bad.parent.mkdir(parents=True)
        bad.write_text("{not json")
        plugin = HardhatPlugin(project=str(hardhat_project.path), commands=NO_COMMANDS)
        with pytest.raises(ResolutionError):
            plugin.contracts()

    def test_non_array_abi_aborts(self, hardhat_project):
        hardhat_project.artifact("contracts/A.sol/A.json", "A", abi={"name": "f"})
        plugin = HardhatPlugin(project=str(hardhat_project.path), commands=NO_COMMANDS)
        with pytest.raises(ResolutionError, match="sequence of items"):
            plugin.contracts()


# ── Build lifecycle ─────────────────────────────────────────────

class TestBuildLifecycle:
    def test_clean_then_build_in_project_dir(self, hardhat_project, ran):
        hardhat_project.artifact("contracts/A.sol/A.json", "A")
        plugin = HardhatPlugin(project=str(hardhat_project.path))
        plugin.contracts()
        cwd = str(hardhat_project.path.resolve())
        assert ran == [
            ("npx hardhat clean", cwd, False),
            ("npx hardhat compile", cwd, False),
        ]

    def test_disabled_steps_are_skipped(self, hardhat_project, ran):
        hardhat_project.artifact("contracts/A.sol/A.json", "A")
        plugin = HardhatPlugin(
            project=str(hardhat_project.path),
            commands=Commands(clean=False, build="make abi", rebuild=False),
        )
        plugin.contracts()
        assert [c[0] for c in ran] == ["make abi"]

    def test_build_failure_aborts_without_results(self, hardhat_project, monkeypatch):
        hardhat_project.artifact("contracts/A.sol/A.json", "A")

        def _fail(command, cwd, *, forward_output=False):
            raise BuildCommandError(command, 1, "compile error")

        monkeypatch.setattr(hardhat_mod, "run_command", _fail)
        plugin = HardhatPlugin(
            project=str(hardhat_project.path),
            commands=Commands(clean=False, build="npx hardhat compile", rebuild=False),
        )
        with pytest.raises(BuildCommandError, match="exit code 1"):
            plugin.contracts()


class TestResolveCommands:
    def test_defaults_from_package_manager(self):
        resolved = resolve_commands(Commands(), "pnpm")
        assert resolved.clean == "pnpm hardhat clean"
        assert resolved.build == "pnpm hardhat compile"
        assert resolved.rebuild == "pnpm hardhat compile"

    def test_false_disables_and_strings_are_kept(self):
        resolved = resolve_commands(
            Commands(clean=False, build="forge build", rebuild=None), "npm"
        )
        assert resolved.clean is None
        assert resolved.build == "forge build"
        assert resolved.rebuild == "npx hardhat compile"


class TestValidate:
    def test_missing_project(self, tmp_path):
        plugin = HardhatPlugin(project=str(tmp_path / "nope"))
        with pytest.raises(PrerequisiteError, match="not found"):
            plugin.validate()

    def test_no_probe_when_all_commands_given(self, hardhat_project, ran):
        HardhatPlugin(
            project=str(hardhat_project.path),
            commands=Commands(clean="a", build="b", rebuild="c"),
        ).validate()
        assert ran == []

    def test_probe_when_a_command_is_unset(self, hardhat_project, ran):
        HardhatPlugin(
            project=str(hardhat_project.path),
            commands=Commands(clean=False, build=False),
        ).validate()
        assert [c[0] for c in ran] == ["npx hardhat --version"]

    def test_probe_failure_gives_install_instruction(self, hardhat_project, monkeypatch):
        def _fail(command, cwd, *, forward_output=False):
            raise BuildCommandError(command, None, "not found")

        monkeypatch.setattr(hardhat_mod, "run_command", _fail)
        plugin = HardhatPlugin(project=str(hardhat_project.path))
        with pytest.raises(PrerequisiteError) as exc_info:
            plugin.validate()
        assert "npm install --save-dev hardhat" in str(exc_info.value)


# ── Watch hooks ─────────────────────────────────────────────────

class TestWatchHooks:
    def test_on_remove_suppressed_when_name_still_exists(self, hardhat_project):
        hardhat_project.artifact("contracts/v2/Token.sol/Token.json", "Token")
        plugin = HardhatPlugin(project=str(hardhat_project.path), commands=NO_COMMANDS)
        removed = hardhat_project.path / "artifacts" / "contracts" / "Token.sol" / "Token.json"
        assert plugin.on_remove(str(removed)) is None

    def test_on_remove_returns_name_when_gone(self, hardhat_project):
        hardhat_project.artifact("contracts/Other.sol/Other.json", "Other")
        plugin = HardhatPlugin(
            project=str(hardhat_project.path), name_prefix="Hh", commands=NO_COMMANDS
        )
        removed = hardhat_project.path / "artifacts" / "contracts" / "Token.sol" / "Token.json"
        assert plugin.on_remove(str(removed)) == "HhToken"

    def test_on_add_and_on_change_read_artifact(self, hardhat_project):
        path = hardhat_project.artifact("contracts/A.sol/A.json", "A")
        plugin = HardhatPlugin(project=str(hardhat_project.path), commands=NO_COMMANDS)
        assert plugin.on_add(str(path)).name == "A"
        assert plugin.on_change(str(path)).name == "A"

    def test_watch_paths_cover_artifacts(self, hardhat_project):
        plugin = HardhatPlugin(project=str(hardhat_project.path))
        base = (hardhat_project.path / "artifacts").resolve().as_posix()
        assert plugin.watch.paths == [
            f"{base}/**/*.json",
            f"!{base}/**/build-info/**",
            f"!{base}/**/*.dbg.json",
        ]

    def test_no_watch_command_when_rebuild_disabled(self, hardhat_project):
        plugin = HardhatPlugin(project=str(hardhat_project.path), commands=NO_COMMANDS)
        assert plugin.watch.command is None
        assert HardhatPlugin(project=str(hardhat_project.path)).watch.command is not None


class TestRebuild:
    @pytest.mark.parametrize("kind", ["add", "change", "unlink"])
    def test_rebuild_on_handled_events(self, hardhat_project, ran, kind):
        plugin = HardhatPlugin(
            project=str(hardhat_project.path),
            commands=Commands(clean=False, build=False, rebuild="npx hardhat compile"),
        )
        plugin.rebuild(FileEvent(kind, "/x/contracts/A.sol"))
        assert ran == [("npx hardhat compile", str(hardhat_project.path.resolve()), True)]

    @pytest.mark.parametrize("kind", ["addDir", "unlinkDir", "ready", "raw"])
    def test_other_events_ignored(self, hardhat_project, ran, kind):
        plugin = HardhatPlugin(project=str(hardhat_project.path))
        plugin.rebuild(FileEvent(kind, "/x/contracts"))
        assert ran == []


class TestFromConfig:
    def test_builds_plugin(self, hardhat_project):
        plugin = from_config(
            {
                "type": "hardhat",
                "project": str(hardhat_project.path),
                "name_prefix": "Hh",
                "exclude": "*.dbg.json",
                "commands": {"clean": False, "build": "npx hardhat compile"},
            }
        )
        assert plugin.name_prefix == "Hh"
        assert plugin.exclude == ["*.dbg.json"]
        assert plugin.commands == Commands(clean=False, build="npx hardhat compile")

    def test_requires_project(self):
        from abiforge.errors import ConfigError

        with pytest.raises(ConfigError, match="project"):
            from_config({"type": "hardhat"})
