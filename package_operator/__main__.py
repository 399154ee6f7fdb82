#!/usr/bin/env python
"""
The main module provides the executable entrypoint for the package operator
"""

# Standard
from typing import Dict, List, Optional, Tuple
import argparse

# First Party
import aconfig
import alog

# Local
from .cmd import BootstrapCmd, CmdBase, RunOperatorCmd
from .config import library_config
from .log_format import PackageOperatorJsonFormatter

## Constants ###################################################################

log = alog.use_channel("MAIN")

## Helpers #####################################################################


def add_library_config_args(parser, config_obj=None, path=None) -> Dict[str, List[str]]:
    """Automatically add args for all elements of the library config"""
    path = path or []
    setters = {}
    config_obj = config_obj if config_obj is not None else library_config
    for key, val in config_obj.items():
        sub_path = path + [key]

        # If this is a nested arg, recurse
        if isinstance(val, aconfig.AttributeAccessDict):
            setters.update(add_library_config_args(parser, config_obj=val, path=sub_path))

        # Otherwise, add an argument explicitly
        else:
            arg_name = ".".join(sub_path)
            dest_name = "_".join(sub_path)
            kwargs = {
                "default": val,
                "dest": dest_name,
                "help": f"Library config override for {arg_name} (see package_operator.config)",
            }
            if isinstance(val, list):
                kwargs["nargs"] = "*"
            elif isinstance(val, bool):
                kwargs["action"] = "store_true"
            elif val is not None:
                kwargs["type"] = type(val)

            if (
                f"--{arg_name}"
                not in parser._option_string_actions  # pylint: disable=protected-access
            ):
                parser.add_argument(f"--{arg_name}", **kwargs)
                setters[dest_name] = sub_path
    return setters


def update_library_config(args, setters):
    """Update the library config values based on the parsed arguments"""
    for dest_name, config_path in setters.items():
        config_obj = library_config
        while len(config_path) > 1:
            config_obj = config_obj[config_path[0]]
            config_path = config_path[1:]
        config_obj[config_path[0]] = getattr(args, dest_name)


def add_command(
    subparsers: argparse._SubParsersAction,
    cmd: CmdBase,
) -> Tuple[argparse.ArgumentParser, Dict[str, List[str]]]:
    """Add the subparser and set up the default fun call"""
    parser = cmd.add_subparser(subparsers)
    parser.set_defaults(func=cmd.cmd)
    library_args = parser.add_argument_group("Library Configuration")
    library_config_setters = add_library_config_args(library_args)
    return parser, library_config_setters


## Main ########################################################################

# The command run when no known command is given
DEFAULT_COMMAND = "run"


def build_parser() -> Tuple[
    argparse.ArgumentParser, argparse._SubParsersAction, Dict[str, List[str]]
]:
    """Build the top level parser with one subcommand per operator command

    Returns:
        parser:  argparse.ArgumentParser
            The top level parser
        subparsers:  argparse._SubParsersAction
            The subcommands keyed by command name
        setters:  Dict[str, List[str]]
            Library config paths by argument dest for every command
    """
    parser = argparse.ArgumentParser(description=__doc__)
    subparsers = parser.add_subparsers(help="Available commands", dest="command")
    setters = {}
    for cmd in (RunOperatorCmd(), BootstrapCmd()):
        _, cmd_setters = add_command(subparsers, cmd)
        setters.update(cmd_setters)
    return parser, subparsers, setters


def main(argv: Optional[List[str]] = None):
    """Parse the command line, apply library config overrides and run the
    selected command. Without a known command the operator manager runs.

    Args:
        argv:  Optional[List[str]]
            Command line arguments. Defaults to sys.argv.
    """
    parser, subparsers, library_config_setters = build_parser()

    # Use a preliminary parser to check for the presence of a command and fall
    # back to the default command if not found
    check_parser = argparse.ArgumentParser(add_help=False)
    check_parser.add_argument("command", nargs="?")
    check_args, _ = check_parser.parse_known_args(argv)
    if check_args.command not in subparsers.choices:
        args = subparsers.choices[DEFAULT_COMMAND].parse_args(argv)
    else:
        args = parser.parse_args(argv)

    # Provide overrides to the library configs
    update_library_config(args, library_config_setters)

    # Reconfigure logging
    alog.configure(
        default_level=library_config.log_level,
        filters=library_config.log_filters,
        formatter=PackageOperatorJsonFormatter() if library_config.log_json else "pretty",
        thread_id=library_config.log_thread_id,
    )
    log.debug("Running command %s", args.command or DEFAULT_COMMAND)

    # Run the command's function
    args.func(args)


if __name__ == "__main__":  # pragma: no cover
    main()
