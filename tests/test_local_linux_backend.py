import io
import subprocess
from http.client import IncompleteRead
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError

import pytest

from devimage.backends.local_linux import LocalLinuxBackend
from devimage.environment import BuildEnvironment
from devimage.errors import ExternalProcessError, NetworkError, PackageResolutionError
from devimage.models import DefaultCommand, SystemUpdate
from devimage.sequencer import RunState, Sequencer


class _Runner:
    """Records subprocess invocations and replays canned results."""

    def __init__(self, *results: subprocess.CompletedProcess[Any]) -> None:
        self.results = list(results)
        self.calls: list[tuple[list[str], dict[str, Any]]] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[Any]:
        self.calls.append((cmd, kwargs))
        if self.results:
            return self.results.pop(0)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


@pytest.fixture
def linux_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("devimage.backends.local_linux.sys.platform", "linux")
    monkeypatch.setattr("devimage.backends.local_linux.shutil.which", lambda name: f"/usr/bin/{name}")


def _host_env() -> BuildEnvironment:
    return BuildEnvironment(root=Path("/"))


def _failed(stderr: str, returncode: int = 100) -> subprocess.CompletedProcess[Any]:
    return subprocess.CompletedProcess([], returncode, stdout="", stderr=stderr)


@pytest.mark.usefixtures("linux_host")
def test_install_runs_apt_noninteractively_on_host_root(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = _Runner()
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", runner)
    env = _host_env()
    env.set_variable("CARGO_HOME", "/usr/local/cargo")

    LocalLinuxBackend(privilege="none").install_packages(("git", "curl"), env)

    cmd, kwargs = runner.calls[0]
    assert cmd == ["apt-get", "install", "-yq", "git", "curl"]
    assert kwargs["env"]["DEBIAN_FRONTEND"] == "noninteractive"
    assert kwargs["env"]["CARGO_HOME"] == "/usr/local/cargo"
    assert kwargs["stdin"] == subprocess.DEVNULL


@pytest.mark.usefixtures("linux_host")
def test_commands_run_through_chroot_for_other_roots(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = _Runner()
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", runner)

    LocalLinuxBackend(privilege="none").update_index(BuildEnvironment(root=tmp_path))

    assert runner.calls[0][0] == ["chroot", str(tmp_path), "apt-get", "update", "-yq"]


@pytest.mark.usefixtures("linux_host")
def test_sudo_is_prepended_for_unprivileged_users(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = _Runner()
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", runner)
    monkeypatch.setattr("devimage.backends.local_linux.os.getuid", lambda: 1000)

    LocalLinuxBackend().upgrade_packages(_host_env())

    assert runner.calls[0][0] == ["sudo", "apt-get", "upgrade", "-yq"]


@pytest.mark.usefixtures("linux_host")
def test_clean_cache_keeps_package_index(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = _Runner()
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", runner)

    LocalLinuxBackend(privilege="none").clean_cache(_host_env())

    assert [cmd for cmd, _ in runner.calls] == [
        ["apt-get", "clean"],
        ["apt-get", "update", "-yq"],
    ]


@pytest.mark.usefixtures("linux_host")
@pytest.mark.parametrize(
    ("stderr", "error_type"),
    [
        ("E: Unable to locate package nonexistent-pkg-xyz", PackageResolutionError),
        ("E: Package 'python' has no installation candidate", PackageResolutionError),
        ("W: Failed to fetch http://archive.ubuntu.com/  Temporary failure resolving", NetworkError),
        ("E: dpkg was interrupted, you must manually run 'dpkg --configure -a'", ExternalProcessError),
    ],
)
def test_apt_failures_are_classified(
    monkeypatch: pytest.MonkeyPatch, stderr: str, error_type: type[Exception]
) -> None:
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", _Runner(_failed(stderr)))

    with pytest.raises(error_type) as excinfo:
        LocalLinuxBackend(privilege="none").install_packages(("x",), _host_env())

    assert excinfo.value.context["returncode"] == "100"  # type: ignore[attr-defined]
    assert stderr in excinfo.value.context["stderr"]  # type: ignore[attr-defined]


def test_backend_requires_linux_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("devimage.backends.local_linux.sys.platform", "darwin")

    with pytest.raises(ExternalProcessError) as excinfo:
        LocalLinuxBackend().update_index(_host_env())

    assert "Linux host" in str(excinfo.value)


def test_backend_requires_apt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("devimage.backends.local_linux.sys.platform", "linux")
    monkeypatch.setattr("devimage.backends.local_linux.shutil.which", lambda _: None)

    with pytest.raises(ExternalProcessError) as excinfo:
        LocalLinuxBackend(privilege="none").update_index(_host_env())

    assert "apt-get" in str(excinfo.value)
    assert excinfo.value.hint is not None


def test_fetch_file_writes_payload_under_root(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    requested: list[tuple[str, float]] = []

    def _urlopen(url: str, timeout: float) -> io.BytesIO:
        requested.append((url, timeout))
        return io.BytesIO(b"binary")

    monkeypatch.setattr("devimage.backends.local_linux.urlopen", _urlopen)
    env = BuildEnvironment(root=tmp_path)

    path = LocalLinuxBackend(fetch_timeout=5.0).fetch_file(
        "https://example.invalid/ffsend", "/usr/bin/ffsend", env
    )

    assert path == tmp_path / "usr" / "bin" / "ffsend"
    assert path.read_bytes() == b"binary"
    assert requested == [("https://example.invalid/ffsend", 5.0)]


@pytest.mark.parametrize(
    ("exc", "key", "value"),
    [
        (HTTPError("https://example.invalid/x", 404, "Not Found", None, None), "status", "404"),  # type: ignore[arg-type]
        (URLError("Name or service not known"), "reason", "Name or service not known"),
        (TimeoutError("timed out"), "error", "timed out"),
        (ValueError("unknown url type: 'example.com/x'"), "error", "unknown url type: 'example.com/x'"),
        (IncompleteRead(b"par", 10), "error", "IncompleteRead(3 bytes read, 10 more expected)"),
    ],
)
def test_fetch_errors_become_network_errors(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, exc: Exception, key: str, value: str
) -> None:
    def _urlopen(url: str, timeout: float) -> io.BytesIO:
        raise exc

    monkeypatch.setattr("devimage.backends.local_linux.urlopen", _urlopen)

    with pytest.raises(NetworkError) as excinfo:
        LocalLinuxBackend().fetch_file(
            "https://example.invalid/x", "/usr/bin/x", BuildEnvironment(root=tmp_path)
        )

    assert excinfo.value.context[key] == value
    assert not (tmp_path / "usr" / "bin" / "x").exists()


@pytest.mark.usefixtures("linux_host")
def test_installer_script_is_piped_to_sh_with_channel(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = _Runner(subprocess.CompletedProcess([], 0, stdout=b"", stderr=b""))
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", runner)
    monkeypatch.setattr(
        "devimage.backends.local_linux.urlopen",
        lambda url, timeout: io.BytesIO(b"#!/bin/sh\necho rustup\n"),
    )

    LocalLinuxBackend(privilege="none").run_installer(
        "https://sh.rustup.rs", "stable", _host_env()
    )

    cmd, kwargs = runner.calls[0]
    assert cmd == ["sh", "-s", "--", "-y", "--default-toolchain", "stable"]
    assert kwargs["input"] == b"#!/bin/sh\necho rustup\n"
    assert kwargs["env"]["DEBIAN_FRONTEND"] == "noninteractive"


@pytest.mark.usefixtures("linux_host")
def test_installer_failure_is_external_process_error(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = _Runner(subprocess.CompletedProcess([], 1, stdout=b"", stderr=b"error: bad channel"))
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", runner)
    monkeypatch.setattr("devimage.backends.local_linux.urlopen", lambda url, timeout: io.BytesIO(b""))

    with pytest.raises(ExternalProcessError) as excinfo:
        LocalLinuxBackend(privilege="none").run_installer(
            "https://sh.rustup.rs", "bogus", _host_env()
        )

    assert excinfo.value.context["channel"] == "bogus"
    assert excinfo.value.context["stderr"] == "error: bad channel"


def test_missing_sudo_is_reported_before_running(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = _Runner()
    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", runner)
    monkeypatch.setattr("devimage.backends.local_linux.sys.platform", "linux")
    monkeypatch.setattr("devimage.backends.local_linux.os.getuid", lambda: 1000)
    monkeypatch.setattr(
        "devimage.backends.local_linux.shutil.which",
        lambda name: None if name == "sudo" else f"/usr/bin/{name}",
    )

    with pytest.raises(ExternalProcessError) as excinfo:
        LocalLinuxBackend().install_packages(("git",), _host_env())

    assert "`sudo`" in str(excinfo.value)
    assert "privilege='none'" in (excinfo.value.hint or "")
    assert runner.calls == []


def test_missing_shell_fails_installer_before_download(monkeypatch: pytest.MonkeyPatch) -> None:
    downloads: list[str] = []

    def _urlopen(url: str, timeout: float) -> io.BytesIO:
        downloads.append(url)
        return io.BytesIO(b"")

    monkeypatch.setattr("devimage.backends.local_linux.sys.platform", "linux")
    monkeypatch.setattr(
        "devimage.backends.local_linux.shutil.which",
        lambda name: None if name == "sh" else f"/usr/bin/{name}",
    )
    monkeypatch.setattr("devimage.backends.local_linux.urlopen", _urlopen)

    with pytest.raises(ExternalProcessError) as excinfo:
        LocalLinuxBackend(privilege="none").run_installer(
            "https://sh.rustup.rs", "stable", _host_env()
        )

    assert "`sh`" in str(excinfo.value)
    assert downloads == []


@pytest.mark.usefixtures("linux_host")
def test_process_that_cannot_start_is_external_process_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _missing(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[Any]:
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", _missing)

    with pytest.raises(ExternalProcessError) as excinfo:
        LocalLinuxBackend(privilege="none").update_index(_host_env())

    assert excinfo.value.context["operation"] == "update_index"
    assert excinfo.value.context["command"] == "apt-get update -yq"


@pytest.mark.usefixtures("linux_host")
def test_sequencer_aborts_when_apt_cannot_start(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _missing(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[Any]:
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr("devimage.backends.local_linux.subprocess.run", _missing)

    result = Sequencer(backend=LocalLinuxBackend(privilege="none")).run(
        [SystemUpdate(), DefaultCommand(argv=("/bin/bash",))], root=Path("/")
    )

    assert result.state is RunState.ABORTED
    assert result.failure is not None
    assert result.failure.index == 0
    assert isinstance(result.failure.error, ExternalProcessError)
    assert result.environment.default_command is None
