import re
import platform
import subprocess
from collections import namedtuple
from contextlib import contextmanager

#
# Logs.
#
import logging
logger = logging.getLogger('procbackend')


#
# Utils functions.
#
def instances(backend):
    return list(reversed([elt.__name__ for elt in backend.__class__.mro()[:-2]]))


def isbackend(backend, value):
    return True if value in instances(backend) else False


def pid_of(handle):
    """Return the process identifier of **handle**, which can be a
    ``ProcessHandle``, an integer or any object with a ``pid`` attribute (like
    ``subprocess.Popen``)."""
    pid = getattr(handle, 'pid', handle)
    if isinstance(pid, bool) or not isinstance(pid, int):
        raise ValueError("invalid process identifier '%s'" % (pid,))
    # 0 and negative values target process groups!
    if pid <= 0:
        raise ValueError("invalid process identifier '%d'" % pid)
    return pid


#
# Constants
#
# Available controls with their defaults values.
_CONTROLS = {'shell': None,
             'helper': False,
             'detach': False,
             'decode': 'utf-8'}

# Errors.
_BACKEND_CLASS_ERR = ("don't use 'Backend' class directly, use the backend "
                      "returned by the 'backend' function instead.")
_EMPTY_COMMAND_ERR = 'unable to build an empty command'

# Messages of kill helpers ('kill', 'taskkill') for classifying errors.
_NOT_FOUND_RE = re.compile(r'no such process|not found', re.I)
_DENIED_RE = re.compile(r'not permitted|access is denied|permission denied',
                        re.I)


ProcessHandle = namedtuple('ProcessHandle', ['pid'])


#
# Exceptions.
#
class BackendError(Exception):
    pass


class ProcessControlError(BackendError):
    """Exception raised when a process can't be signaled. **reason** is one of
    the *NOT_FOUND*, *PERMISSION_DENIED* or *UNKNOWN* constants and **detail**
    the error text returned by the operating system."""
    NOT_FOUND = 'not_found'
    PERMISSION_DENIED = 'permission_denied'
    UNKNOWN = 'unknown'

    def __init__(self, pid, detail='', reason=UNKNOWN):
        BackendError.__init__(self, "unable to kill process '%s': %s"
                                    % (pid, detail or reason))
        self.pid = pid
        self.detail = detail
        self.reason = reason


class NoSuchProcessError(ProcessControlError):
    def __init__(self, pid, detail='no such process'):
        ProcessControlError.__init__(self, pid, detail, self.NOT_FOUND)


class ProcessPermissionError(ProcessControlError):
    def __init__(self, pid, detail='operation not permitted'):
        ProcessControlError.__init__(self, pid, detail, self.PERMISSION_DENIED)


def from_oserror(pid, err):
    """Convert an **err** OSError raised while signaling **pid** to the
    corresponding ``ProcessControlError``."""
    detail = err.strerror or str(err)
    # Windows raises 'ERROR_INVALID_PARAMETER' for unknown processes.
    if (isinstance(err, ProcessLookupError)
            or getattr(err, 'winerror', None) == 87):
        return NoSuchProcessError(pid, detail)
    if isinstance(err, PermissionError):
        return ProcessPermissionError(pid, detail)
    return ProcessControlError(pid, detail)


def from_output(pid, output):
    """Convert the error **output** of a kill helper to the corresponding
    ``ProcessControlError``."""
    output = output.strip()
    if _NOT_FOUND_RE.search(output):
        return NoSuchProcessError(pid, output)
    if _DENIED_RE.search(output):
        return ProcessPermissionError(pid, output)
    return ProcessControlError(pid, output)


#
# Abstract class for process backends.
#
class Backend(object):
    """Class that implement operations that are commons to all platforms.
    Subclasses set **default_shell** and implement ``kill_process``."""
    default_shell = None

    def __init__(self):
        for control, value in _CONTROLS.items():
            setattr(self, '_%s' % control, value)


    def __repr__(self):
        return '<%s shell=%s>' % (self.__class__.__name__, self.shell)


    @property
    def controls(self):
        return {control: getattr(self, '_%s' % control) for control in _CONTROLS}


    def get_control(self, control):
        if control not in _CONTROLS:
            raise BackendError("invalid control '%s'" % control)
        return getattr(self, '_%s' % control)


    def set_control(self, control, value):
        if control not in _CONTROLS:
            raise BackendError("invalid control '%s'" % control)
        setattr(self, '_%s' % control, value)


    @contextmanager
    def set_controls(self, **controls):
        cur_controls = dict(self.controls)

        try:
            for control, value in controls.items():
                self.set_control(control, value)
            yield None
        finally:
            for control, value in cur_controls.items():
                self.set_control(control, value)


    @property
    def shell(self):
        return self._shell or self.default_shell


    def _join(self, args):
        if isinstance(args, str):
            args = [args]
        args = list(args)
        if not args:
            raise ValueError(_EMPTY_COMMAND_ERR)
        return ' '.join(args)


    def build_command(self, args):
        """Return the command running **args** in a login shell of the user, so
        the user environment (PATH, aliases, ...) is loaded.

        .. note::
            Arguments are joined with spaces and *not* escaped: shell
            metacharacters (quotes, ``;``, ``|``, ``$``, ...) are interpreted
            by the shell.
        """
        command = [self.shell, '-l', '-c', self._join(args)]
        logger.debug('[command] %s' % command)
        return command


    def creation_options(self):
        """Keyword arguments for ``subprocess.Popen`` that must be set before
        the process is started."""
        return {}


    def spawn_in_background(self, process):
        """Hook called after **process** has been started. It never fails."""
        try:
            logger.debug('[spawn] background process %s'
                         % getattr(process, 'pid', process))
        except Exception as err:
            logger.debug('[spawn] unable to get the process identifier: %s'
                         % err)


    def spawn(self, args, **kwargs):
        """Start **args** with ``subprocess.Popen`` and return the process
        object. **kwargs** are passed to ``Popen`` and override the options of
        ``creation_options``."""
        options = self.creation_options()
        options.update(kwargs)
        process = subprocess.Popen(self.build_command(args), **options)
        self.spawn_in_background(process)
        return process


    def kill_process(self, handle):
        raise NotImplementedError(_BACKEND_CLASS_ERR)


    def _kill_helper(self, pid, command, env=None):
        """Kill **pid** by executing **command** (like ``kill -9 PID``)."""
        logger.debug('[kill] %s' % ' '.join(command))
        try:
            obj = subprocess.Popen(command,
                                   stdout=subprocess.PIPE,
                                   stderr=subprocess.PIPE,
                                   env=env)
            stdout, stderr = obj.communicate()
        except OSError as err:
            raise ProcessControlError(pid, err.strerror or str(err))
        if obj.returncode != 0:
            output = stderr or stdout
            raise from_output(pid, output.decode(self._decode or 'utf-8', 'replace'))


#
# Platform variants.
#
from procbackend.posix import Posix, Darwin, Linux
from procbackend.windows import Windows
from procbackend.remote import Remote, connect

_BACKENDS = {'darwin': Darwin, 'linux': Linux, 'windows': Windows}


def backend(system=None, **controls):
    """Return the backend of **system** (by default the current operating
    system as returned by ``platform.system()``). **controls** are set on the
    new backend."""
    system = (system or platform.system()).lower()
    new_backend = _BACKENDS.get(system, Posix)()
    for control, value in controls.items():
        new_backend.set_control(control, value)
    return new_backend
