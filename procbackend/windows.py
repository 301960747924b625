import os
import signal
import procbackend

# Process creation flags (only defined by the subprocess module on Windows).
CREATE_NEW_PROCESS_GROUP = 0x00000200
CREATE_NO_WINDOW = 0x08000000


class Windows(procbackend.Backend):
    """Backend for Windows. There is no login mode for ``cmd.exe`` so commands
    are only run with ``/C``. Processes are killed with ``TerminateProcess``
    (``os.kill`` with a signal that is not a console event) or, if the
    *helper* control is set, the ``taskkill`` command."""
    default_shell = 'cmd'

    def build_command(self, args):
        command = [self.shell, '/C', self._join(args)]
        procbackend.logger.debug('[command] %s' % command)
        return command


    def creation_options(self):
        flags = CREATE_NO_WINDOW
        if self._detach:
            flags |= CREATE_NEW_PROCESS_GROUP
        return {'creationflags': flags}


    def kill_process(self, handle):
        pid = procbackend.pid_of(handle)
        if self._helper:
            return self._kill_helper(pid, ['taskkill', '/F', '/PID', str(pid)])

        procbackend.logger.debug('[kill] TerminateProcess %d' % pid)
        try:
            os.kill(pid, signal.SIGTERM)
        except OSError as err:
            raise procbackend.from_oserror(pid, err)
        except OverflowError:
            # Does not fit in a pid_t.
            raise procbackend.NoSuchProcessError(pid)
