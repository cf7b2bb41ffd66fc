from argparse import ArgumentParser, HelpFormatter, ArgumentTypeError
from pathlib import Path

from ..standard import Context

from .output import Output
from .lang import get as _

from typing import Optional, Type, List


# The following classes are only used for type checking and represent a typed namespace
# as produced by the arguments registered to the argument parser.

class RootNs:
    main_dir: Optional[Path]
    timeout: Optional[float]
    out_kind: str
    verbose: int
    # Initialized by main function after argument parsing.
    out: Output
    context: Context

class InstallNs(RootNs):
    no_loader: bool
    no_mods: bool

class StartNs(InstallNs):
    dry: bool
    no_install: bool
    jvm: Optional[str]
    max_memory: int
    username: Optional[str]
    uuid: Optional[str]
    access_token: str
    server: Optional[str]
    server_port: Optional[int]
    server_name: str

class StatusNs(RootNs):
    host: str
    port: Optional[int]


def register_arguments() -> ArgumentParser:
    parser = ArgumentParser(allow_abbrev=False, prog="nyarumc", description=_("args"))
    parser.add_argument("--main-dir", help=_("args.main_dir"), type=Path)
    parser.add_argument("--timeout", help=_("args.timeout"), type=float)
    parser.add_argument("--output", help=_("args.output"), dest="out_kind", choices=get_outputs(), default="human-color")
    parser.add_argument("-v", dest="verbose", help=_("args.verbose"), action="count", default=0)
    register_subcommands(parser.add_subparsers(title="subcommands", dest="subcommand"))
    return parser


def register_subcommands(subparsers):
    register_install_arguments(subparsers.add_parser("install", help=_("args.install")))
    register_start_arguments(subparsers.add_parser("start", help=_("args.start")))
    register_status_arguments(subparsers.add_parser("status", help=_("args.status")))
    subparsers.add_parser("java", help=_("args.java"))
    register_show_arguments(subparsers.add_parser("show", help=_("args.show")))


def register_install_arguments(parser: ArgumentParser):
    parser.add_argument("--no-loader", help=_("args.install.no_loader"), action="store_true")
    parser.add_argument("--no-mods", help=_("args.install.no_mods"), action="store_true")


def register_start_arguments(parser: ArgumentParser):
    parser.formatter_class = new_help_formatter_class(40)
    register_install_arguments(parser)
    parser.add_argument("--dry", help=_("args.start.dry"), action="store_true")
    parser.add_argument("--no-install", help=_("args.start.no_install"), action="store_true")
    parser.add_argument("--jvm", help=_("args.start.jvm"))
    parser.add_argument("--max-memory", help=_("args.start.max_memory"), type=int, default=4096, metavar="MB")
    parser.add_argument("-u", "--username", help=_("args.start.username"), metavar="NAME")
    parser.add_argument("-i", "--uuid", help=_("args.start.uuid"))
    parser.add_argument("--access-token", help=_("args.start.access_token"), default="", metavar="TOKEN")
    parser.add_argument("-s", "--server", help=_("args.start.server"))
    parser.add_argument("-p", "--server-port", type=port_from_str, help=_("args.start.server_port"), metavar="PORT")
    parser.add_argument("--server-name", help=_("args.start.server_name"), default="Nyaru Server", metavar="NAME")


def register_status_arguments(parser: ArgumentParser):
    parser.add_argument("host")
    parser.add_argument("port", nargs="?", type=port_from_str)


def register_show_arguments(parser: ArgumentParser):
    subparsers = parser.add_subparsers(title="subcommands", dest="show_subcommand")
    subparsers.required = True
    subparsers.add_parser("about", help=_("args.show.about"))
    subparsers.add_parser("lang", help=_("args.show.lang"))


def port_from_str(s: str) -> int:
    try:
        port = int(s)
    except ValueError:
        port = -1
    if not 0 <= port <= 65535:
        raise ArgumentTypeError(_("args.port.invalid", given=s))
    return port


def new_help_formatter_class(max_help_position: int) -> Type[HelpFormatter]:

    class CustomHelpFormatter(HelpFormatter):
        def __init__(self, prog):
            super().__init__(prog, max_help_position=max_help_position)

    return CustomHelpFormatter


def get_outputs() -> List[str]:
    return ["human-color", "human", "machine"]
