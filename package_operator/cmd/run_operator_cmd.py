"""
This is the main entrypoint command for running the operator
"""
# Standard
from typing import Callable, List, Optional
import argparse
import os
import signal

# Third Party
import yaml

# First Party
import alog

# Local
from .. import config
from ..context import RunContext
from ..controllers import ClusterPackageController, PackageController
from ..deploy_manager import DeployManagerBase, DryRunDeployManager, OpenshiftDeployManager
from ..metrics import MetricsRecorderBase, PackageMetricsRecorder, serve_metrics
from ..packages import FolderImagePuller, ImagePullerBase
from ..watch_manager import ControllerManager
from .base import CmdBase

log = alog.use_channel("MAIN")


def make_run_manager(
    deploy_manager: DeployManagerBase,
    image_puller: Optional[ImagePullerBase] = None,
    metrics_recorder: Optional[MetricsRecorderBase] = None,
) -> Callable[[RunContext], None]:
    """Build the function that hosts the package controllers until its context
    is cancelled. The controllers take the adoption flag from the context.
    """
    image_puller = image_puller or FolderImagePuller()
    metrics_recorder = metrics_recorder or PackageMetricsRecorder()

    def run_manager(ctx: RunContext):
        manager = ControllerManager(deploy_manager, namespace=None)
        for controller_type in (PackageController, ClusterPackageController):
            manager.add_controller(
                controller_type(
                    deploy_manager=deploy_manager,
                    image_puller=image_puller,
                    metrics_recorder=metrics_recorder,
                    force_adoption=ctx.force_adoption,
                )
            )
        log.info("Running manager (force_adoption=%s)", ctx.force_adoption)
        manager.run(ctx)

    return run_manager


def setup_deploy_manager(resources: Optional[List[dict]] = None) -> DeployManagerBase:
    """Create the deploy manager for the configured mode"""
    if config.dry_run:
        log.info("Running DRY RUN")
        return DryRunDeployManager(resources=resources)
    assert not resources, "Can only pre-populate resources with dry run"
    return OpenshiftDeployManager()


def add_resource_dir_arg(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--resource_dir",
        "-r",
        default=None,
        help="(dry run) Path to a directory of yaml files that should exist in the cluster",
    )


def parse_resource_dir(resource_dir: Optional[str]) -> List[dict]:
    """If given, this will parse all yaml files found in the given directory"""
    all_resources = []
    if resource_dir is not None:
        assert config.dry_run and os.path.isdir(
            resource_dir
        ), "Can only specify --resource_dir with dry run and it must point to a valid directory"
        for fname in sorted(os.listdir(resource_dir)):
            if fname.endswith(".yaml") or fname.endswith(".yml"):
                resource_path = os.path.join(resource_dir, fname)
                log.debug3("Reading resource file [%s]", resource_path)
                with open(resource_path, encoding="utf-8") as handle:
                    all_resources.extend(
                        doc for doc in yaml.safe_load_all(handle) if doc
                    )
    return all_resources


def cancel_on_signals(ctx: RunContext):
    """Cancel the context on SIGINT and SIGTERM"""

    def do_stop(*_, **__):  # pragma: no cover
        log.info("Received stop signal")
        ctx.cancel()

    signal.signal(signal.SIGINT, do_stop)
    signal.signal(signal.SIGTERM, do_stop)


class RunOperatorCmd(CmdBase):
    __doc__ = __doc__

    ## Interface ##

    def add_subparser(
        self,
        subparsers: argparse._SubParsersAction,
    ) -> argparse.ArgumentParser:
        parser = subparsers.add_parser("run", help=__doc__)
        runtime_args = parser.add_argument_group("Runtime Configuration")
        add_resource_dir_arg(runtime_args)
        return parser

    def cmd(self, args: argparse.Namespace):
        deploy_manager = setup_deploy_manager(parse_resource_dir(args.resource_dir))
        ctx = RunContext(force_adoption=config.manager.force_adoption, name="run")
        cancel_on_signals(ctx)

        metrics_recorder = PackageMetricsRecorder()
        serve_metrics(metrics_recorder, config.metrics.port)

        log.info("Starting Manager")
        make_run_manager(deploy_manager, metrics_recorder=metrics_recorder)(ctx)

        # All done!
        log.info("SHUTTING DOWN")
