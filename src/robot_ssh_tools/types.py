"""Type definitions for Robot SSH Tools."""

from typing import Dict, List, Tuple

# Connection types
ConnectionResult = Tuple[int, str, str]  # (return_code, stdout, stderr)

# Reachability
StatusMap = Dict[str, bool]  # {host: is_online}

# Terminal launch
CommandLine = List[str]  # argv handed to subprocess.Popen

# Host resolution
HostConfig = Tuple[str, str, int]  # (hostname, username, port)
