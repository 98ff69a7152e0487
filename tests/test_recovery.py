"""
Tests for the recovery classifier — fixed remedies, at most once per failure.
"""

import errno
import os
import stat
from pathlib import Path

import pytest

from admintx.adapters.shell.command import ShellCommand
from admintx.core.engine.recovery import RecoveryClassifier, is_recoverable_error
from admintx.core.models.outcome import FailureContext, OperationKind, Outcome


def _counting_retry(calls: list[str], result=0):
    def _retry():
        calls.append("retry")
        return result

    return _retry


# ── Missing directory (exit 1) ───────────────────────────────────────


class TestMissingDirectory:
    def test_creates_missing_parent_tree(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "c" / "file.conf"
        ctx = FailureContext(kind=OperationKind.WRITE, target_path=str(target))

        assert RecoveryClassifier().attempt(1, ctx) is True
        assert target.parent.is_dir()

    def test_chdir_creates_target_itself(self, tmp_path: Path):
        target = tmp_path / "work" / "dir"
        ctx = FailureContext(kind=OperationKind.CHDIR, target_path=str(target))

        assert RecoveryClassifier().attempt(1, ctx) is True
        assert target.is_dir()

    def test_read_only_filesystem(self, tmp_path: Path, monkeypatch):
        def _erofs(self, *args, **kwargs):
            raise OSError(errno.EROFS, "Read-only file system", str(self))

        monkeypatch.setattr(Path, "mkdir", _erofs)
        ctx = FailureContext(
            kind=OperationKind.MKDIR, target_path=str(tmp_path / "ro" / "new")
        )

        assert RecoveryClassifier().attempt(1, ctx) is False

    def test_retries_original_operation(self, tmp_path: Path, calls):
        ctx = FailureContext(
            kind=OperationKind.MKDIR,
            target_path=str(tmp_path / "x" / "y"),
            retry=_counting_retry(calls),
        )
        assert RecoveryClassifier().attempt(1, ctx) is True
        assert calls == ["retry"]

    def test_failed_retry_is_not_recovered(self, tmp_path: Path, calls):
        ctx = FailureContext(
            kind=OperationKind.MKDIR,
            target_path=str(tmp_path / "x" / "y"),
            retry=_counting_retry(calls, result=1),
        )
        assert RecoveryClassifier().attempt(1, ctx) is False

    def test_generic_failure_without_directory_hint(self):
        ctx = FailureContext(kind=OperationKind.PACKAGE, target_path="/opt/pkg")
        assert RecoveryClassifier().attempt(1, ctx) is False

    def test_mkdir_command_end_to_end(self, tmp_path: Path):
        target = tmp_path / "deep" / "tree" / "leaf"
        cmd = ShellCommand(["mkdir", str(target)])
        out = cmd()
        assert out.exit_code == 1

        assert RecoveryClassifier().attempt(out.exit_code, out.context) is True
        assert target.is_dir()


# ── Permission (exit 2) ──────────────────────────────────────────────


class TestPermission:
    def test_retries_under_elevation(self, calls):
        ctx = FailureContext(
            permission_denied=True,
            retry_elevated=_counting_retry(calls),
        )
        classifier = RecoveryClassifier(elevation_available=lambda: True)
        assert classifier.attempt(2, ctx) is True
        assert calls == ["retry"]

    def test_elevated_retry_must_succeed(self, calls):
        ctx = FailureContext(
            permission_denied=True,
            retry_elevated=_counting_retry(calls, result=2),
        )
        classifier = RecoveryClassifier(elevation_available=lambda: True)
        assert classifier.attempt(2, ctx) is False
        assert calls == ["retry"]

    def test_no_elevation_available(self, calls):
        ctx = FailureContext(
            permission_denied=True,
            retry_elevated=_counting_retry(calls),
        )
        classifier = RecoveryClassifier(elevation_available=lambda: False)
        assert classifier.attempt(2, ctx) is False
        assert calls == []

    def test_misuse_without_permission_error(self, calls):
        ctx = FailureContext(retry_elevated=_counting_retry(calls))
        classifier = RecoveryClassifier(elevation_available=lambda: True)
        assert classifier.attempt(2, ctx) is False
        assert calls == []


# ── Not executable (exit 126) ────────────────────────────────────────


class TestNotExecutable:
    def test_grants_execute_and_retries(self, tmp_path: Path, calls):
        script = tmp_path / "tool.sh"
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o644)
        ctx = FailureContext(target_path=str(script), retry=_counting_retry(calls))

        assert RecoveryClassifier().attempt(126, ctx) is True
        assert os.stat(script).st_mode & stat.S_IXUSR
        assert calls == ["retry"]

    def test_missing_target(self, tmp_path: Path, calls):
        ctx = FailureContext(
            target_path=str(tmp_path / "absent"), retry=_counting_retry(calls)
        )
        assert RecoveryClassifier().attempt(126, ctx) is False
        assert calls == []

    def test_script_end_to_end(self, tmp_path: Path):
        script = tmp_path / "hello.sh"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o644)

        out = ShellCommand([str(script)])()
        assert out.exit_code == 126
        assert RecoveryClassifier().attempt(out.exit_code, out.context) is True


# ── Other classes and bookkeeping ────────────────────────────────────


class TestClassifier:
    def test_not_found_has_no_remedy(self):
        assert RecoveryClassifier().attempt(127, FailureContext()) is False

    @pytest.mark.parametrize("code", [3, 5, 124, 130, 255])
    def test_unrecognised_codes(self, code):
        assert RecoveryClassifier().attempt(code, FailureContext()) is False

    def test_at_most_once_per_failure(self, tmp_path: Path, calls):
        ctx = FailureContext(
            kind=OperationKind.MKDIR,
            target_path=str(tmp_path / "once" / "dir"),
            retry=_counting_retry(calls, result=1),
        )
        classifier = RecoveryClassifier()
        assert classifier.attempt(1, ctx) is False
        assert classifier.attempt(1, ctx) is False
        assert calls == ["retry"]
        assert ctx.recovery_attempted

    def test_disabled(self, tmp_path: Path):
        target = tmp_path / "never" / "file"
        ctx = FailureContext(kind=OperationKind.WRITE, target_path=str(target))
        assert RecoveryClassifier(enabled=False).attempt(1, ctx) is False
        assert not target.parent.exists()

    def test_missing_context(self):
        assert RecoveryClassifier().attempt(1, None) is False

    def test_failures_are_recorded(self):
        classifier = RecoveryClassifier()
        classifier.attempt(127, FailureContext())
        classifier.attempt(99, FailureContext())
        assert [f.exit_code for f in classifier.failures] == [127, 99]
        assert classifier.failures[1].reason == "no remedy"

    def test_retry_returning_outcome(self, tmp_path: Path):
        ctx = FailureContext(
            kind=OperationKind.MKDIR,
            target_path=str(tmp_path / "o" / "p"),
            retry=lambda: Outcome.success(),
        )
        assert RecoveryClassifier().attempt(1, ctx) is True


class TestIsRecoverableError:
    @pytest.mark.parametrize("code", [0, 1, 2, 126])
    def test_recognised(self, code):
        assert is_recoverable_error(code)

    @pytest.mark.parametrize("code", [127, 3, 130])
    def test_not_recognised(self, code):
        assert not is_recoverable_error(code)
