"""
Commands of the package operator executable
"""
# Local
from .base import CmdBase
from .bootstrap_cmd import BootstrapCmd
from .run_operator_cmd import RunOperatorCmd
