"""
=============================================================================
PROCESS LIFECYCLE
=============================================================================

Startup steps that act on the server process itself rather than on a
connection: signal dispositions, privilege drop and daemonization.

=============================================================================
STARTUP ORDER
=============================================================================

    setup_environment()        chroot + setgid/initgroups/setuid
          │                    (needs root, so it goes first)
          ▼
    install_signal_handlers()
          │
          ▼
    SocketServer.bind()        errors still reach the terminal
          │
          ▼
    become_daemon()            only without --debug
          │
          ▼
    accept loop

=============================================================================
SIGNALS
=============================================================================

    SIGPIPE   ignored. Writing to a client that hung up raises
              BrokenPipeError in that connection's worker instead of
              killing the process.

    SIGCHLD   ignored. The kernel reaps exited children itself, so the
              accept loop never has to wait() and no zombies pile up.

    SIGTERM   logged, then the process exits with status 1.
    SIGHUP
    SIGINT

=============================================================================
WHAT IS A DAEMON?
=============================================================================

A process with no controlling terminal:

    1. chdir("/")              don't keep a mounted filesystem busy
    2. stdin/out/err → /dev/null
    3. fork(), parent exits    the child is not a process group leader...
    4. setsid()                ...so it can start a new session without a
                               controlling terminal

=============================================================================
"""

import os
import sys
import signal
import logging
from typing import Optional


logger = logging.getLogger(__name__)

FATAL_SIGNALS = ("SIGTERM", "SIGHUP", "SIGINT")


def signal_exit(signum, frame):
    """Log the signal and leave with status 1."""
    logger.error(f"exit by signal {signum}")
    sys.exit(1)


def install_signal_handlers() -> None:
    """
    Install the process-wide signal dispositions.

    Must run in the main thread (a restriction of signal.signal).
    """
    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, signal.SIG_IGN)

    for name in FATAL_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, signal_exit)

    detach_children()


def detach_children() -> None:
    """
    Let the kernel reap exited children.

    SIG_IGN on SIGCHLD is the POSIX way of saying "I will never wait for
    my children".
    """
    if hasattr(signal, "SIGCHLD"):
        signal.signal(signal.SIGCHLD, signal.SIG_IGN)


def become_daemon() -> None:
    """
    Detach from the controlling terminal.

    The calling process exits inside this function; only the daemonized
    child returns.
    """
    os.chdir("/")

    devnull = os.open(os.devnull, os.O_RDWR)
    for fd in (0, 1, 2):
        os.dup2(devnull, fd)
    if devnull > 2:
        os.close(devnull)

    pid = os.fork()
    if pid != 0:
        os._exit(0)

    os.setsid()


def setup_environment(root: str, user: Optional[str], group: Optional[str]) -> None:
    """
    chroot into root and drop privileges to user/group.

    =========================================================================
    ORDER MATTERS
    =========================================================================

        setgid()      before setuid(): afterwards we may not change it
        initgroups()  supplementary groups, needs root as well
        chroot()      needs root
        setuid()      last: from here on we are an ordinary user

    After this call the document root is "/".

    =========================================================================

    Raises:
        ValueError: user or group missing or unknown.
        OSError: A system call failed (usually: not running as root).
    """
    import grp
    import pwd

    if not user or not group:
        raise ValueError("use both of --user and --group")

    try:
        gr = grp.getgrnam(group)
    except KeyError:
        raise ValueError(f"no such group: {group}") from None

    try:
        pw = pwd.getpwnam(user)
    except KeyError:
        raise ValueError(f"no such user: {user}") from None

    os.setgid(gr.gr_gid)
    os.initgroups(user, gr.gr_gid)
    os.chroot(root)
    os.chdir("/")
    os.setuid(pw.pw_uid)

    logger.info(f"Chrooted to {root} as {user}:{group}")
