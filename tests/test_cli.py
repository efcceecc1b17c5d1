"""Tests for the wireguardkit CLI (dispatch and argument handling)."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest


class TestMain:
    def test_no_command_prints_usage(self, capsys) -> None:
        from wireguardkit_tooling.cli.main import main

        with patch("sys.argv", ["wireguardkit"]), pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
        _, err = capsys.readouterr()
        assert "Usage: wireguardkit <command>" in err
        assert "build-xcframework" in err

    def test_help_exits_zero(self) -> None:
        from wireguardkit_tooling.cli.main import main

        with patch("sys.argv", ["wireguardkit", "--help"]), pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0

    def test_unknown_command(self, capsys) -> None:
        from wireguardkit_tooling.cli.main import main

        with patch("sys.argv", ["wireguardkit", "package"]), pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
        _, err = capsys.readouterr()
        assert "Unknown command: package" in err

    def test_dispatches_phase_command(self, tmp_path: Path) -> None:
        from wireguardkit_tooling.cli import build as build_cli
        from wireguardkit_tooling.cli.main import main

        runner = MagicMock(return_value=0)
        argv = ["wireguardkit", "verify", "--project-root", str(tmp_path), "-v"]
        with (
            patch.dict(build_cli.PHASE_COMMANDS, {"verify": ("Phase 3", runner)}),
            patch("sys.argv", argv),
            pytest.raises(SystemExit) as exc,
        ):
            main()
        assert exc.value.code == 0
        runner.assert_called_once_with(project_root=tmp_path, config_path=None, verbose=True)

    def test_phase_exit_code_propagates(self, tmp_path: Path) -> None:
        from wireguardkit_tooling.cli import build as build_cli
        from wireguardkit_tooling.cli.main import main

        runner = MagicMock(return_value=1)
        argv = ["wireguardkit", "build-go", "--config", str(tmp_path / "ci.yaml")]
        with (
            patch.dict(build_cli.PHASE_COMMANDS, {"build-go": ("Phase 1", runner)}),
            patch("sys.argv", argv),
            pytest.raises(SystemExit) as exc,
        ):
            main()
        assert exc.value.code == 1
        assert runner.call_args.kwargs["config_path"] == tmp_path / "ci.yaml"

    def test_clean_intermediate(self, tmp_path: Path) -> None:
        from wireguardkit_tooling.cli.main import main

        argv = ["wireguardkit", "clean", "--intermediate", "--project-root", str(tmp_path)]
        with (
            patch("wireguardkit_tooling.phases.run_clean", return_value=0) as m,
            patch("sys.argv", argv),
            pytest.raises(SystemExit) as exc,
        ):
            main()
        assert exc.value.code == 0
        m.assert_called_once_with(
            intermediate_only=True, project_root=tmp_path, config_path=None, verbose=False
        )


class TestStandaloneScripts:
    def test_build_go_main(self, tmp_path: Path) -> None:
        from wireguardkit_tooling.cli import build as build_cli

        runner = MagicMock(return_value=0)
        with (
            patch.dict(build_cli.PHASE_COMMANDS, {"build-go": ("Phase 1", runner)}),
            patch("sys.argv", ["wireguardkit-build-go", "--project-root", str(tmp_path)]),
            pytest.raises(SystemExit) as exc,
        ):
            build_cli.build_go_main()
        assert exc.value.code == 0
        assert runner.call_args.kwargs["project_root"] == tmp_path

    def test_verify_main_without_arguments(self) -> None:
        from wireguardkit_tooling.cli import build as build_cli

        runner = MagicMock(return_value=1)
        with (
            patch.dict(build_cli.PHASE_COMMANDS, {"verify": ("Phase 3", runner)}),
            patch("sys.argv", ["wireguardkit-verify"]),
            pytest.raises(SystemExit) as exc,
        ):
            build_cli.verify_main()
        assert exc.value.code == 1
        runner.assert_called_once_with(project_root=None, config_path=None, verbose=False)

    def test_real_pipeline_through_cli(self, project: Path, fake_tools, capsys) -> None:
        from wireguardkit_tooling.cli.main import main

        argv = ["wireguardkit", "build", "--project-root", str(project)]
        with (
            patch("wireguardkit_tooling.phases.default_toolset", return_value=fake_tools),
            patch("sys.argv", argv),
            pytest.raises(SystemExit) as exc,
        ):
            main()
        assert exc.value.code == 0
        assert (project / "Artifacts" / "WireGuardKit.xcframework" / "Info.plist").is_file()
