"""
em_registry.cli — Command line entrypoint.

Usage:
    em-registry configure [--account NAME] [--api-base-url URL]
    em-registry create
    em-registry init
    em-registry list-modules [--mine]
    em-registry package [--publish]
    em-registry publish <zipfile>

Exit codes:
    0  success (including a declined create confirmation)
    1  remote, packaging or unexpected failure
    2  precondition failure (no account, no descriptor, module exists)
"""

from __future__ import annotations

import argparse
import dataclasses
import getpass
import json
import sys
import traceback
from collections.abc import Sequence
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

import requests

from em_registry import config
from em_registry.descriptor import DescriptorStore
from em_registry.exceptions import (
    AccountNotFoundError,
    ModuleDescriptorNotFoundError,
    ModuleNotInitializedError,
    PrePackageCommandError,
    RegistryCliError,
    RegistryRequestError,
    UploadSubmitError,
)
from em_registry.identity import IdentityStore
from em_registry.models import AccountIdentity, ModuleDescriptor
from em_registry.packager import create_package
from em_registry.prompts import InputFn, Question, ask, ask_all
from em_registry.registry import RegistryClient
from em_registry.upload import preview_lines, publish_artifact
from em_registry.validation import (
    normalize_tenant_ids,
    validate_account_id,
    validate_build_directory,
    validate_confirmation,
    validate_main_file,
    validate_module_id,
    validate_module_name,
    validate_pre_pack_command,
    validate_tenant_ids,
    validate_user_api_key,
    validate_user_id,
)

PROG = "em-registry"
LIST_COLUMNS = ("_id", "name", "forTenants", "createdBy")


@dataclass
class CommandContext:
    """Collaborators handed to every command handler."""

    identities: IdentityStore
    descriptors: DescriptorStore
    cwd: Path
    session: requests.Session | None = None
    input_fn: InputFn = input
    secret_fn: InputFn = getpass.getpass


def default_context() -> CommandContext:
    cwd = Path.cwd()
    return CommandContext(
        identities=IdentityStore(config.credentials_path()),
        descriptors=DescriptorStore(cwd),
        cwd=cwd,
    )


def _package_version() -> str:
    try:
        return version("em-registry-cli")
    except PackageNotFoundError:
        return "0.0.0"


def _print_payload(payload: Any, *, stream: Any = sys.stdout) -> None:
    if payload is None:
        return
    if isinstance(payload, (dict, list)):
        print(json.dumps(payload, indent=2, sort_keys=True), file=stream)
        return
    print(payload, file=stream)


def render_table(rows: list[dict[str, str]], columns: Sequence[str]) -> list[str]:
    """Render rows as an aligned text table with an (index) column."""
    headers = ["(index)", *columns]
    body = [[str(idx), *(row.get(col, "") for col in columns)] for idx, row in enumerate(rows)]
    widths = [max(len(cell) for cell in column) for column in zip(headers, *body)]

    def _line(cells: Sequence[str]) -> str:
        return " | ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    lines = [_line(headers), "-+-".join("-" * width for width in widths)]
    lines.extend(_line(cells) for cells in body)
    return lines


# ---------------------------------------------------------------------------
# Shared resolution helpers
# ---------------------------------------------------------------------------


def _registry_client(args: argparse.Namespace, ctx: CommandContext) -> RegistryClient:
    identity = ctx.identities.get(args.account)
    base_url = config.resolve_api_base_url(
        explicit=getattr(args, "api_base_url", None),
        stored=identity.api_base_url,
    )
    return RegistryClient(
        identity,
        base_url=base_url,
        session=ctx.session,
        timeout_seconds=config.timeout_seconds(),
    )


def _resolve_zip_path(raw: str, ctx: CommandContext) -> Path:
    path = Path(raw).expanduser()
    return path if path.is_absolute() else ctx.cwd / path


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _handle_configure(args: argparse.Namespace, ctx: CommandContext) -> int:
    current = ctx.identities.get_or_blank(args.account)
    questions = [
        Question(
            name="accountId",
            message="What's the accountId",
            validate=validate_account_id,
            default=current.account_id or None,
        ),
        Question(
            name="userId",
            message="What's the userId",
            validate=validate_user_id,
            default=current.user_id or None,
        ),
        Question(
            name="userApiKey",
            message=f"What's the userApiKey [...{current.api_key_hint}]",
            validate=validate_user_api_key,
            default=current.user_api_key or None,
            secret=True,
        ),
    ]
    answers = ask_all(questions, input_fn=ctx.input_fn, secret_fn=ctx.secret_fn)

    api_base_url = getattr(args, "api_base_url", None) or current.api_base_url
    identity = AccountIdentity(
        account_id=answers["accountId"],
        user_id=answers["userId"],
        user_api_key=answers["userApiKey"],
        api_base_url=api_base_url.strip() if api_base_url else None,
    )
    ctx.identities.set(args.account, identity)
    print(f"Credentials for account [{args.account}] saved: {ctx.identities.path}")
    return 0


def _create_questions() -> list[Question]:
    return [
        Question(name="name", message="Module's name", validate=validate_module_name),
        Question(
            name="tenantIds",
            message="What companies are you building this module for?",
            validate=validate_tenant_ids,
            default="*",
        ),
        Question(
            name="buildDirectory",
            message="What's the build directory?",
            validate=validate_build_directory,
            default="build",
        ),
        Question(
            name="mainFile",
            message="What's the main javascript file?",
            validate=validate_main_file,
            default="index.js",
        ),
        Question(
            name="prePackCommand",
            message="What's the pre package command?",
            validate=validate_pre_pack_command,
            default="npm run build",
        ),
    ]


def _handle_create(args: argparse.Namespace, ctx: CommandContext) -> int:
    ctx.descriptors.ensure_no_module()
    client = _registry_client(args, ctx)

    answers = ask_all(
        _create_questions(),
        input_fn=ctx.input_fn,
        secret_fn=ctx.secret_fn,
    )
    descriptor = ModuleDescriptor(
        name=answers["name"],
        tenant_ids=normalize_tenant_ids(answers["tenantIds"]),
        build_directory=answers["buildDirectory"],
        main_file=answers["mainFile"],
        pre_pack_command=answers["prePackCommand"],
    )
    _print_payload(descriptor.metadata())

    confirmation = ask(
        Question(
            name="correct",
            message="Do you confirm all your answers are correct? (yes|no)",
            validate=validate_confirmation,
            default="no",
        ),
        input_fn=ctx.input_fn,
        secret_fn=ctx.secret_fn,
    )
    if confirmation.lower() == "no":
        print("Ok! Try again later")
        return 0

    response = client.create_module(descriptor.metadata())
    module_id = str(response["module"]["_id"])
    ctx.descriptors.save(dataclasses.replace(descriptor, module_id=module_id))
    print(f"Module {descriptor.name} created with moduleId {module_id}")
    print(f"Descriptor saved: {ctx.descriptors.path}")
    return 0


def _handle_init(args: argparse.Namespace, ctx: CommandContext) -> int:
    current = ctx.descriptors.load_or_none()
    module_id = ask(
        Question(
            name="moduleId",
            message="What's the moduleId",
            validate=validate_module_id,
            default=current.module_id if current else None,
        ),
        input_fn=ctx.input_fn,
        secret_fn=ctx.secret_fn,
    )
    ctx.descriptors.save_module_id(module_id)
    print(f"moduleId {module_id} saved to {ctx.descriptors.path}")
    return 0


def _publish(args: argparse.Namespace, ctx: CommandContext, zip_path: Path) -> int:
    descriptor = ctx.descriptors.load()
    if descriptor.module_id is None:
        raise ModuleNotInitializedError(
            f"{ctx.descriptors.path.name} has no moduleId. "
            f"Run `{PROG} init` for an existing module or `{PROG} create` for a new one."
        )
    client = _registry_client(args, ctx)
    response = publish_artifact(client, descriptor.module_id, zip_path, session=ctx.session)
    for line in preview_lines(response, config.sandbox_url()):
        print(line)
    return 0


def _handle_publish(args: argparse.Namespace, ctx: CommandContext) -> int:
    return _publish(args, ctx, _resolve_zip_path(args.zipfile, ctx))


def _handle_package(args: argparse.Namespace, ctx: CommandContext) -> int:
    descriptor = ctx.descriptors.load()
    output = create_package(
        ctx.cwd / descriptor.build_directory,
        ctx.cwd / config.PACKAGE_FILE_NAME,
        pre_package_command=descriptor.pre_pack_command,
        cwd=ctx.cwd,
    )
    if args.publish:
        return _publish(args, ctx, output)
    return 0


def _handle_list_modules(args: argparse.Namespace, ctx: CommandContext) -> int:
    client = _registry_client(args, ctx)
    modules = client.list_modules()
    if args.mine:
        modules = [m for m in modules if m.created_by == client.identity.user_id]
    rows = [m.row() for m in modules]
    for line in render_table(rows, LIST_COLUMNS):
        print(line)
    return 0


_HANDLERS = {
    "configure": _handle_configure,
    "create": _handle_create,
    "init": _handle_init,
    "list-modules": _handle_list_modules,
    "package": _handle_package,
    "publish": _handle_publish,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _add_global_arguments(parser: argparse.ArgumentParser, *, suppress: bool) -> None:
    """Options accepted before and after the subcommand.

    On subparsers the defaults are suppressed so they never overwrite a value
    given before the subcommand.
    """
    parser.add_argument(
        "-a",
        "--account",
        metavar="ACCOUNT_NAME",
        default=argparse.SUPPRESS if suppress else config.DEFAULT_ACCOUNT,
        help="The name of the configured account",
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Prints more information about the current process",
    )
    parser.add_argument(
        "-p",
        "--publish",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Publishes the module right after packaging it",
    )


def _add_api_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--api-base-url", default=None, help="Registry API base URL")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Package and publish modules to the module registry.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    _add_global_arguments(parser, suppress=False)
    subparsers = parser.add_subparsers(dest="command", required=True)

    publish = subparsers.add_parser("publish", help="Publishes your module")
    _add_global_arguments(publish, suppress=True)
    _add_api_arguments(publish)
    publish.add_argument("zipfile", help="Zip file produced by the package command")

    init = subparsers.add_parser("init", help="Initializes a module with its id")
    _add_global_arguments(init, suppress=True)

    configure = subparsers.add_parser("configure", help="Configures credentials")
    _add_global_arguments(configure, suppress=True)
    _add_api_arguments(configure)

    create = subparsers.add_parser("create", help="Creates a module on the registry")
    _add_global_arguments(create, suppress=True)
    _add_api_arguments(create)

    list_modules = subparsers.add_parser("list-modules", help="Lists available modules")
    _add_global_arguments(list_modules, suppress=True)
    _add_api_arguments(list_modules)
    list_modules.add_argument(
        "--mine",
        action="store_true",
        help="Only list the modules created by the configured user",
    )

    package = subparsers.add_parser(
        "package",
        help="Creates a package file using the pre-defined command",
    )
    _add_global_arguments(package, suppress=True)
    _add_api_arguments(package)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None, ctx: CommandContext | None = None) -> int:
    args = parse_args(argv)
    config.configure_logging(args.debug)
    try:
        ctx = ctx or default_context()
        return _HANDLERS[args.command](args, ctx)
    except PrePackageCommandError as exc:
        print(exc.stderr, file=sys.stderr, end="" if exc.stderr.endswith("\n") else "\n")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except RegistryRequestError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        print(exc.response_text, file=sys.stderr)
        return 1
    except UploadSubmitError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        print(exc.body.decode("utf-8", errors="replace"), file=sys.stderr)
        return 1
    except AccountNotFoundError as exc:
        print(
            f"ERROR: {exc}. Run `{PROG} configure --account {exc.account}` first.",
            file=sys.stderr,
        )
        return 2
    except ModuleDescriptorNotFoundError as exc:
        print(
            "Make sure to run the init command for an existing project "
            "or the create command to create a new module",
            file=sys.stderr,
        )
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    except RegistryCliError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:
        if args.debug:
            traceback.print_exc()
        else:
            print(f"ERROR: {exc}", file=sys.stderr)
        return 1


def main_entry() -> None:
    raise SystemExit(main())
