import shlex
import paramiko
import procbackend

# Errors.
_NOT_CONNECTED_ERR = 'you are not connected'
_SPAWN_ERR = 'unable to spawn command: %s'
_SPAWN_STATUS_ERR = 'command exited with status %d'

# Seconds to wait before checking a spawned command is still running.
_SPAWN_CHECK_DELAY = 1


#
# Context Manager for connecting to a remote host.
#
class connect(object):
    def __init__(self, host, **kwargs):
        self.hostname = host
        self.options = kwargs


    def __enter__(self):
        self._backend = Remote()
        self._backend.connect(self.hostname, **self.options)
        return self._backend


    def __exit__(self, type, value, traceback):
        self._backend.disconnect()
        del self._backend


#
# Class for managing processes of a remote host with SSH (paramiko).
#
class Remote(procbackend.Backend):
    """Backend for a host reached over SSH. As there is no access to the
    signals of the remote system, processes are killed with the ``kill``
    command of the remote shell."""
    default_shell = 'bash'

    def __init__(self):
        procbackend.Backend.__init__(self)
        self.hostname = None
        self.username = None
        self.return_code = -1
        self._conn = None


    def __repr__(self):
        return '<Remote %s@%s shell=%s>' % (self.username, self.hostname,
                                             self.shell)


    def connect(self, host, **kwargs):
        """Open the SSH connection to **host**. **kwargs** are passed to
        ``paramiko.SSHClient.connect`` apart from *keepalive* (interval in
        seconds of keepalive packets) and *username* (default: root)."""
        keepalive = kwargs.pop('keepalive', 0)
        self.username = kwargs.pop('username', 'root')

        params = {'username': self.username}
        for param, value in kwargs.items():
            params[param] = value
        conn = paramiko.SSHClient()
        try:
            conn.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            conn.connect(host, **params)
        except Exception as err:
            raise procbackend.BackendError(err)

        self._conn = conn
        self.hostname = host
        # Add keepalive on connection.
        self._conn.get_transport().set_keepalive(keepalive)


    def disconnect(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None


    def is_connected(self):
        if self._conn is None or not self._conn.get_transport():
            raise procbackend.BackendError(_NOT_CONNECTED_ERR)


    def execute(self, command, *args):
        """Execute a command on the remote host. The output is a list of three
        elements: a boolean representing the status of the command (True if
        return code equal to 0), the standard output and the error output. The
        return code of the command is put in *return_code* attribut."""
        self.is_connected()

        command = ' '.join(str(elt) for elt in (command,) + args)
        procbackend.logger.debug('[execute] %s' % command)
        chan = self._conn.get_transport().open_session()
        try:
            chan.exec_command(command)
            self.return_code = chan.recv_exit_status()
            stdout = chan.makefile('rb', -1).read()
            stderr = chan.makefile_stderr('rb', -1).read()
        finally:
            chan.close()
        return [True if self.return_code == 0 else False,
                stdout.decode(self._decode) if self._decode else stdout,
                stderr.decode(self._decode) if self._decode else stderr]


    def spawn(self, args):
        """Start **args** detached from the SSH session and return the
        ``ProcessHandle`` of the remote process.

        The command is checked after *_SPAWN_CHECK_DELAY* seconds: if it has
        already exited with an error (like a missing binary), ``BackendError``
        is raised."""
        command = ' '.join(shlex.quote(arg) for arg in self.build_command(args))
        status, stdout, stderr = self.execute(
            'nohup', command, '>/dev/null 2>&1 </dev/null &',
            'pid=$!;', 'sleep %d;' % _SPAWN_CHECK_DELAY,
            'if kill -0 $pid 2>/dev/null; then echo $pid;',
            'else wait $pid; rc=$?; [ $rc -eq 0 ] && echo $pid; exit $rc; fi')
        if not status:
            raise procbackend.BackendError(
                _SPAWN_ERR % (stderr.strip()
                              or _SPAWN_STATUS_ERR % self.return_code))
        try:
            handle = procbackend.ProcessHandle(int(stdout.split()[-1]))
        except (IndexError, ValueError):
            raise procbackend.BackendError(_SPAWN_ERR % stdout)
        self.spawn_in_background(handle)
        return handle


    def kill_process(self, handle):
        pid = procbackend.pid_of(handle)
        status, stdout, stderr = self.execute('LC_ALL=C', 'kill', '-9', pid)
        if not status:
            output = stderr or stdout
            raise procbackend.from_output(pid, output.decode(errors='replace')
                                               if isinstance(output, bytes)
                                               else output)
