"""
Install the package operator into the cluster using the operator itself
"""
# Standard
import argparse
import sys

# First Party
import alog

# Local
from ..bootstrap import Bootstrapper
from ..context import RunContext
from ..exceptions import PackageOperatorError
from .base import CmdBase
from .run_operator_cmd import (
    add_resource_dir_arg,
    cancel_on_signals,
    make_run_manager,
    parse_resource_dir,
    setup_deploy_manager,
)

log = alog.use_channel("MAIN")


class BootstrapCmd(CmdBase):
    __doc__ = __doc__

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("bootstrap", help=__doc__)
        runtime_args = parser.add_argument_group("Runtime Configuration")
        add_resource_dir_arg(runtime_args)
        return parser

    def cmd(self, args: argparse.Namespace):
        deploy_manager = setup_deploy_manager(parse_resource_dir(args.resource_dir))
        ctx = RunContext(name="bootstrap-cmd")
        cancel_on_signals(ctx)

        try:
            bootstrapper = Bootstrapper(deploy_manager, make_run_manager(deploy_manager))
            bootstrapper.bootstrap(ctx)
        except PackageOperatorError as err:
            log.error("Bootstrap failed: %s", err, exc_info=True)
            sys.exit(1)
        log.info("Bootstrap finished in state %s", bootstrapper.state.value)
