#!/usr/bin/env python3
"""Configuration classes for svn bisection.

This module contains the main configuration dataclasses used throughout svbisect.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class SvnConfig:
    """Configuration for the subversion backend.

    Attributes:
        command: svn binary to run (None to use $SV_SVN or "svn")
        update_depth: Depth passed to 'svn update' when switching revisions
    """

    command: Optional[str] = None
    update_depth: str = "infinity"


@dataclass
class StateConfig:
    """Where bisect state is kept inside the working copy.

    Attributes:
        data_dir: Directory for state files, relative to the working-copy root
        database: SQLite database file holding the session record
        log_file: Replay log file name
    """

    data_dir: str = ".svbisect"
    database: str = "bisect.db"
    log_file: str = "bisect_log"

    def data_path(self, wc_root: str) -> Path:
        """Return the state directory for a working copy.

        Args:
            wc_root: Working-copy root path

        Returns:
            Absolute state directory (data_dir may itself be absolute)
        """
        return Path(wc_root) / self.data_dir


@dataclass
class BisectConfig:
    """Bisection configuration.

    Attributes:
        svn: Subversion backend settings
        state: State storage settings
        command_name: Program name written into replay-log command lines
        config_file: Explicit configuration file, repeated in replay-log command lines
    """

    svn: SvnConfig = field(default_factory=SvnConfig)
    state: StateConfig = field(default_factory=StateConfig)
    command_name: str = "svbisect"
    config_file: Optional[str] = None
