"""Tests for wireguardkit_tooling.prereqs."""

from pathlib import Path

import pytest


class TestBuildPrerequisites:
    def test_all_satisfied(self, env, fake_tools, capsys) -> None:
        from wireguardkit_tooling.prereqs import check_build_prerequisites

        check_build_prerequisites(env, fake_tools)
        out, _ = capsys.readouterr()
        assert "Checking Prerequisites" in out

    def test_go_missing(self, env, fake_tools) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_build_prerequisites

        fake_tools.compiler._version = None
        with pytest.raises(MissingPrerequisiteError, match="Go is required"):
            check_build_prerequisites(env, fake_tools)

    def test_go_too_old(self, env, fake_tools) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_go_installed

        fake_tools.compiler._version = "1.19.13"
        with pytest.raises(MissingPrerequisiteError, match="minimum required version: Go 1.20"):
            check_go_installed(env, fake_tools)

    def test_xcode_too_old(self, env, fake_tools) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_xcode_installed

        fake_tools.bundler._version = "13.4.1"
        with pytest.raises(MissingPrerequisiteError, match="Xcode 13.4.1 is too old"):
            check_xcode_installed(env, fake_tools)

    def test_unparseable_version(self, env, fake_tools) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_go_installed

        fake_tools.compiler._version = "devel"
        with pytest.raises(MissingPrerequisiteError, match="Could not parse Go version"):
            check_go_installed(env, fake_tools)

    def test_simulator_sdk_missing(self, env, fake_tools) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_build_prerequisites

        fake_tools.sdk_locator.missing.add("iphonesimulator")
        with pytest.raises(MissingPrerequisiteError, match="SDK 'iphonesimulator' not found"):
            check_build_prerequisites(env, fake_tools)

    def test_lipo_missing(self, env, fake_tools) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_build_prerequisites

        fake_tools.merger.available = False
        with pytest.raises(MissingPrerequisiteError, match="lipo command not found"):
            check_build_prerequisites(env, fake_tools)

    def test_go_mod_missing(self, env, fake_tools) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_build_prerequisites

        (env.go_source_dir / "go.mod").unlink()
        with pytest.raises(MissingPrerequisiteError, match="go.mod not found"):
            check_build_prerequisites(env, fake_tools)


class TestBundlePrerequisites:
    def test_satisfied(self, env, phase1_outputs) -> None:
        from wireguardkit_tooling.prereqs import check_bundle_prerequisites

        check_bundle_prerequisites(env)

    def test_missing_device_library_points_at_phase1(self, env, phase1_outputs) -> None:
        from wireguardkit_tooling.env import PlatformClass
        from wireguardkit_tooling.errors import ValidationError
        from wireguardkit_tooling.prereqs import check_bundle_prerequisites

        phase1_outputs[PlatformClass.DEVICE].unlink()
        with pytest.raises(ValidationError, match="Device library not found") as exc:
            check_bundle_prerequisites(env)
        assert "wireguardkit build-go" in str(exc.value)

    def test_missing_header(self, env, phase1_outputs) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_bundle_prerequisites

        env.public_header_path.unlink()
        with pytest.raises(MissingPrerequisiteError, match="wireguard.h"):
            check_bundle_prerequisites(env)


class TestVerifyPrerequisites:
    def test_missing_bundle(self, env) -> None:
        from wireguardkit_tooling.errors import MissingPrerequisiteError
        from wireguardkit_tooling.prereqs import check_verify_prerequisites

        with pytest.raises(MissingPrerequisiteError, match="build-xcframework"):
            check_verify_prerequisites(env)

    def test_bundle_present(self, env) -> None:
        from wireguardkit_tooling.prereqs import check_verify_prerequisites

        env.bundle_path.mkdir(parents=True)
        check_verify_prerequisites(env)
        assert Path(env.bundle_path).is_dir()
