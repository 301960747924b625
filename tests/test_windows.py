import os
import signal
import subprocess

import pytest

import procbackend
from procbackend import (ProcessControlError, NoSuchProcessError,
                         ProcessPermissionError)
from procbackend.windows import CREATE_NEW_PROCESS_GROUP, CREATE_NO_WINDOW


@pytest.fixture()
def windows():
    return procbackend.backend('Windows')


class FakePopen(object):
    """Replace ``subprocess.Popen`` for simulating ``taskkill``."""
    calls = []
    returncode = 0
    stderr = b''

    def __init__(self, command, **kwargs):
        FakePopen.calls.append(command)

    def communicate(self):
        return b'', FakePopen.stderr


@pytest.fixture()
def taskkill(monkeypatch):
    FakePopen.calls = []
    FakePopen.returncode = 0
    FakePopen.stderr = b''
    monkeypatch.setattr(subprocess, 'Popen', FakePopen)
    return FakePopen


def test_build_command_uses_cmd(windows):
    assert windows.build_command(['echo', 'hello']) == ['cmd', '/C', 'echo hello']


def test_build_command_rejects_empty_args(windows):
    with pytest.raises(ValueError):
        windows.build_command([])


def test_creation_options_hide_console(windows):
    assert windows.creation_options() == {'creationflags': CREATE_NO_WINDOW}
    with windows.set_controls(detach=True):
        assert windows.creation_options() == {
            'creationflags': CREATE_NO_WINDOW | CREATE_NEW_PROCESS_GROUP}


def test_kill_terminates_process(windows, monkeypatch):
    calls = []
    monkeypatch.setattr(os, 'kill', lambda pid, sig: calls.append((pid, sig)))
    windows.kill_process(1234)
    assert calls == [(1234, signal.SIGTERM)]


def test_kill_unknown_process(windows, monkeypatch):
    def fake_kill(pid, sig):
        err = OSError(22, 'The parameter is incorrect')
        err.winerror = 87
        raise err
    monkeypatch.setattr(os, 'kill', fake_kill)

    with pytest.raises(NoSuchProcessError):
        windows.kill_process(1234)


def test_kill_out_of_range_pid(windows, monkeypatch):
    def fake_kill(pid, sig):
        raise OverflowError('Python int too large to convert to C unsigned long')
    monkeypatch.setattr(os, 'kill', fake_kill)

    with pytest.raises(NoSuchProcessError):
        windows.kill_process(2 ** 40)


def test_kill_access_denied(windows, monkeypatch):
    def fake_kill(pid, sig):
        raise PermissionError(13, 'Access is denied')
    monkeypatch.setattr(os, 'kill', fake_kill)

    with pytest.raises(ProcessPermissionError):
        windows.kill_process(1234)


def test_helper_uses_taskkill(windows, taskkill):
    windows.set_control('helper', True)
    windows.kill_process(1234)
    assert taskkill.calls == [['taskkill', '/F', '/PID', '1234']]


@pytest.mark.parametrize("stderr, cls", [
    (b'ERROR: The process "1234" not found.\r\n', NoSuchProcessError),
    (b'ERROR: The process with PID 1234 could not be terminated.\r\n'
     b'Reason: Access is denied.\r\n', ProcessPermissionError),
    (b'ERROR: Invalid syntax.\r\n', ProcessControlError),
])
def test_helper_errors(windows, taskkill, stderr, cls):
    taskkill.returncode = 128
    taskkill.stderr = stderr
    windows.set_control('helper', True)

    with pytest.raises(cls) as excinfo:
        windows.kill_process(1234)
    assert type(excinfo.value) is cls
    assert excinfo.value.detail == stderr.decode().strip()


def test_spawn_in_background_never_fails(windows):
    for process in (None, 0, object()):
        windows.spawn_in_background(process)
