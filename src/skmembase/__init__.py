"""
SKMembase — encrypted memory backup for sovereign agents.

Your memories, sealed with your password, parked on Membase Hub.
Back up incrementally, restore anywhere, diff any two snapshots.

A smilinTux Open Source Project.
"""

import os

__version__ = "0.1.0"
__author__ = "smilinTux"

CONFIG_HOME = os.environ.get("SKMEMBASE_HOME", "~/.skmembase")
