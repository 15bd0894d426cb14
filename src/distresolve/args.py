"""Argument parsing functionality for distresolve."""

import argparse

from . import __version__


def build_parser():
    """Builds the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="distresolve",
        description=(
            "distresolve - edition, engine and library distribution resolver"
        ),
        add_help=True,
    )
    parser.add_argument("--version",
                        action="version",
                        version=f"%(prog)s {__version__}")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to the global configuration file (YAML)",
                        action="store",
                        type=str)

    commands = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    commands.required = True

    # edition
    edition = commands.add_parser("edition", help="Inspect and resolve editions")
    edition_cmds = edition.add_subparsers(dest="ACTION", metavar="ACTION")
    edition_cmds.required = True

    edition_resolve = edition_cmds.add_parser("resolve", help="Resolve an edition file and its parents")
    edition_resolve.add_argument("EDITION_FILE",
                                 help="Path to the edition YAML document",
                                 type=str)
    edition_resolve.add_argument("--update",
                                 dest="UPDATE",
                                 help="Fetch missing or stale parent editions from edition repositories",
                                 action="store_true")

    edition_list = edition_cmds.add_parser("list", help="List editions available locally")
    edition_list.add_argument("--update",
                              dest="UPDATE",
                              help="Refresh the edition cache from edition repositories first",
                              action="store_true")

    # engine
    engine = commands.add_parser("engine", help="Manage installed engines")
    engine_cmds = engine.add_subparsers(dest="ACTION", metavar="ACTION")
    engine_cmds.required = True

    engine_version = engine_cmds.add_parser("version", help="Print the engine version an edition requires")
    engine_version.add_argument("EDITION_FILE",
                                help="Path to the edition YAML document",
                                type=str)

    engine_install = engine_cmds.add_parser("install", help="Install an engine version and its runtime")
    engine_install.add_argument("ENGINE_VERSION",
                                help="Engine version, e.g. 2024.1.1",
                                type=str)
    engine_install.add_argument("--release-provider",
                                dest="RELEASE_PROVIDER",
                                help="Release root URL or directory (overrides the configuration)",
                                action="store",
                                type=str)
    engine_install.add_argument("--no-install",
                                dest="NO_INSTALL",
                                help="Only report whether the engine is installed; never install",
                                action="store_true")

    engine_uninstall = engine_cmds.add_parser("uninstall", help="Remove an installed engine")
    engine_uninstall.add_argument("ENGINE_VERSION",
                                  help="Engine version to remove",
                                  type=str)
    engine_uninstall.add_argument("--keep-runtimes",
                                  dest="KEEP_RUNTIMES",
                                  help="Do not remove runtimes that are no longer used",
                                  action="store_true")

    engine_cmds.add_parser("list", help="List installed engines")

    # library
    library = commands.add_parser("library", help="Query library metadata")
    library_cmds = library.add_subparsers(dest="ACTION", metavar="ACTION")
    library_cmds.required = True

    get_package = library_cmds.add_parser("get-package", help="Show license and component groups of a library")
    get_package.add_argument("NAMESPACE", help="Library namespace", type=str)
    get_package.add_argument("NAME", help="Library name", type=str)
    get_package.add_argument("--version",
                             dest="LIBRARY_VERSION",
                             help="Published version; omit to use the local library",
                             action="store",
                             type=str)
    get_package.add_argument("--repository",
                             dest="REPOSITORY",
                             help="Repository URL of the published version",
                             action="store",
                             type=str)
    get_package.add_argument("--timeout",
                             dest="TIMEOUT",
                             help="Request deadline in seconds",
                             action="store",
                             type=float)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "COMMAND", None) == "library" and (
        bool(args.LIBRARY_VERSION) != bool(args.REPOSITORY)
    ):
        parser.error("--version and --repository must be given together")
    if getattr(args, "TIMEOUT", None) is not None and args.TIMEOUT <= 0:
        parser.error(f"--timeout must be positive (got {args.TIMEOUT})")
    return args
