"""Process liveness checks used for stale lock detection."""

import os


def is_process_running(pid: int) -> bool:
    """Check if a process with the given PID is still running.

    Args:
        pid: Process ID read from a lock file

    Returns:
        True if the process exists (even if owned by another user)
    """
    if pid <= 0:
        return False

    if os.name == "nt":
        return _is_process_running_windows(pid)

    try:
        # Signal 0 performs error checking only; nothing is delivered
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except OverflowError:
        # Larger than any PID the platform can hold
        return False
    except PermissionError:
        # Exists, but belongs to someone else
        return True
    except OSError:
        return False
    return True


def _is_process_running_windows(pid: int) -> bool:
    """Open a query handle to the process; failure means it is gone."""
    import ctypes

    if pid > 0xFFFFFFFF:
        return False

    process_query_limited_information = 0x1000
    kernel32 = ctypes.windll.kernel32
    handle = kernel32.OpenProcess(process_query_limited_information, False, pid)
    if not handle:
        return False
    kernel32.CloseHandle(handle)
    return True
