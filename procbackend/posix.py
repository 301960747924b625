import os
import signal
import procbackend


class Posix(procbackend.Backend):
    """Backend for Unix-like systems. Processes are killed with ``SIGKILL``
    using ``os.kill`` or, if the *helper* control is set, the ``kill``
    command."""
    default_shell = 'sh'

    def creation_options(self):
        return {'start_new_session': True} if self._detach else {}


    def kill_process(self, handle):
        pid = procbackend.pid_of(handle)
        if self._helper:
            # Force english messages for classifying errors.
            env = dict(os.environ, LC_ALL='C')
            return self._kill_helper(pid, ['kill', '-9', str(pid)], env)

        procbackend.logger.debug('[kill] SIGKILL %d' % pid)
        try:
            os.kill(pid, signal.SIGKILL)
        except OSError as err:
            raise procbackend.from_oserror(pid, err)
        except OverflowError:
            # Does not fit in a pid_t.
            raise procbackend.NoSuchProcessError(pid)


class Darwin(Posix):
    default_shell = 'zsh'


class Linux(Posix):
    default_shell = 'bash'
