"""Unit tests for em_registry.cli."""

from __future__ import annotations

import json
import zipfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests
from em_registry import cli
from em_registry.descriptor import DescriptorStore
from em_registry.identity import IdentityStore
from em_registry.models import AccountIdentity, ModuleDescriptor

API_KEY = "k" * 48
BASE_URL = "https://registry.example.com"


class _FakeResponse:
    def __init__(self, *, status: int = 200, payload: Any = None, raw: bytes | None = None) -> None:
        self.status_code = status
        self.ok = status < 400
        self.content = raw if raw is not None else json.dumps(payload).encode("utf-8")
        self.text = self.content.decode("utf-8")


def _scripted(*values: str):
    it: Iterator[str] = iter(values)
    return lambda _prompt: next(it)


def _no_input(_prompt: str) -> str:
    raise AssertionError("unexpected prompt")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("EM_REGISTRY_API_URL", "EM_REGISTRY_TIMEOUT_SECONDS", "EM_REGISTRY_SANDBOX_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture
def ctx(tmp_path: Path, session: MagicMock) -> cli.CommandContext:
    project = tmp_path / "project"
    project.mkdir()
    return cli.CommandContext(
        identities=IdentityStore(tmp_path / "home" / "credentials"),
        descriptors=DescriptorStore(project),
        cwd=project,
        session=session,
        input_fn=_no_input,
        secret_fn=_no_input,
    )


def _configure_account(ctx: cli.CommandContext, account: str = "default") -> None:
    ctx.identities.set(
        account,
        AccountIdentity(
            account_id="acct01",
            user_id="user01",
            user_api_key=API_KEY,
            api_base_url=BASE_URL,
        ),
    )


def _write_descriptor(ctx: cli.CommandContext, **overrides: Any) -> None:
    values: dict[str, Any] = {
        "name": "Widget",
        "tenant_ids": "*",
        "build_directory": "build",
        "main_file": "index.js",
        "pre_pack_command": None,
        "module_id": "mod-001",
    }
    values.update(overrides)
    ctx.descriptors.save(ModuleDescriptor(**values))


def _upload_url_response(**extra: Any) -> _FakeResponse:
    payload = {
        "uploadURL": {"url": "https://s3/x", "fields": {"key": "v"}},
        "previewUrl": "https://preview/1",
    }
    payload.update(extra)
    return _FakeResponse(payload=payload)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def test_parse_args_defaults() -> None:
    args = cli.parse_args(["list-modules"])
    assert args.command == "list-modules"
    assert args.account == "default"
    assert args.debug is False
    assert args.mine is False


def test_global_options_before_and_after_subcommand() -> None:
    before = cli.parse_args(["--account", "prod", "-d", "package"])
    after = cli.parse_args(["package", "-a", "prod", "--publish"])

    assert (before.account, before.debug, before.publish) == ("prod", True, False)
    assert (after.account, after.debug, after.publish) == ("prod", False, True)


def test_publish_requires_zipfile() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["publish"])


# ---------------------------------------------------------------------------
# configure
# ---------------------------------------------------------------------------


def test_configure_persists_answers(ctx: cli.CommandContext, capsys) -> None:
    ctx.input_fn = _scripted("ab", "acct01", "user01")
    ctx.secret_fn = _scripted("short", API_KEY)

    rc = cli.main(["configure", "--api-base-url", BASE_URL], ctx=ctx)

    assert rc == 0
    assert ctx.identities.get("default") == AccountIdentity(
        account_id="acct01", user_id="user01", user_api_key=API_KEY, api_base_url=BASE_URL
    )
    out = capsys.readouterr().out
    assert "Please enter a valid accountId" in out
    assert "Please enter a valid userApiKey" in out


def test_configure_defaults_to_stored_values(ctx: cli.CommandContext) -> None:
    _configure_account(ctx, "prod")
    ctx.input_fn = _scripted("", "user02")
    ctx.secret_fn = _scripted("")

    rc = cli.main(["configure", "--account", "prod"], ctx=ctx)

    assert rc == 0
    stored = ctx.identities.get("prod")
    assert stored.account_id == "acct01"
    assert stored.user_id == "user02"
    assert stored.user_api_key == API_KEY
    assert stored.api_base_url == BASE_URL


# ---------------------------------------------------------------------------
# create / init
# ---------------------------------------------------------------------------


def test_create_refuses_when_module_exists(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    _write_descriptor(ctx, module_id="mod-001")

    rc = cli.main(["create"], ctx=ctx)

    assert rc != 0
    assert "already have a project" in capsys.readouterr().err
    session.request.assert_not_called()
    session.post.assert_not_called()


def test_create_registers_and_saves_descriptor(ctx: cli.CommandContext, session) -> None:
    _configure_account(ctx)
    session.request.return_value = _FakeResponse(status=201, payload={"module": {"_id": "mod-777"}})
    ctx.input_fn = _scripted("Flight Search", "bb aa", "", "", "", "yes")

    rc = cli.main(["create"], ctx=ctx)

    assert rc == 0
    args, kwargs = session.request.call_args
    assert args == ("POST", f"{BASE_URL}/create-module")
    assert kwargs["json"] == {
        "name": "Flight Search",
        "tenantIds": ["AA", "BB"],
        "buildDirectory": "build",
        "mainFile": "index.js",
        "prePackCommand": "npm run build",
    }
    saved = ctx.descriptors.load()
    assert saved.module_id == "mod-777"
    assert saved.tenant_ids == ("AA", "BB")


def test_create_declined_makes_no_call(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    ctx.input_fn = _scripted("Widget", "", "", "", "", "")

    rc = cli.main(["create"], ctx=ctx)

    assert rc == 0
    assert "Ok! Try again later" in capsys.readouterr().out
    session.request.assert_not_called()
    assert ctx.descriptors.load_or_none() is None


def test_create_without_account_points_to_configure(ctx: cli.CommandContext, capsys) -> None:
    rc = cli.main(["create"], ctx=ctx)

    assert rc == 2
    err = capsys.readouterr().err
    assert "Account [default] not found" in err
    assert "configure" in err


def test_init_binds_module_id(ctx: cli.CommandContext) -> None:
    _write_descriptor(ctx, module_id=None, build_directory="dist")
    ctx.input_fn = _scripted("x", "mod-042")

    rc = cli.main(["init"], ctx=ctx)

    assert rc == 0
    saved = ctx.descriptors.load()
    assert saved.module_id == "mod-042"
    assert saved.build_directory == "dist"


# ---------------------------------------------------------------------------
# package / publish
# ---------------------------------------------------------------------------


def _make_build(ctx: cli.CommandContext) -> None:
    build = ctx.cwd / "build"
    (build / "assets").mkdir(parents=True)
    (build / "index.js").write_text("export default 1", encoding="utf-8")
    (build / "assets" / "logo.png").write_bytes(b"\x89PNG")


def test_package_writes_zip(ctx: cli.CommandContext, session) -> None:
    _write_descriptor(ctx)
    _make_build(ctx)

    rc = cli.main(["package"], ctx=ctx)

    assert rc == 0
    with zipfile.ZipFile(ctx.cwd / "em-module.zip") as archive:
        assert set(archive.namelist()) == {"index.js", "assets/logo.png"}
    session.request.assert_not_called()


def test_package_without_descriptor(ctx: cli.CommandContext, capsys) -> None:
    rc = cli.main(["package"], ctx=ctx)

    assert rc == 2
    err = capsys.readouterr().err
    assert "Make sure to run the init command" in err
    assert "does not contain em-module.json" in err


def test_package_failing_command(ctx: cli.CommandContext, capsys) -> None:
    _write_descriptor(ctx, pre_pack_command="echo compile error >&2; exit 1")
    _make_build(ctx)

    rc = cli.main(["package"], ctx=ctx)

    assert rc != 0
    assert "compile error" in capsys.readouterr().err
    assert not (ctx.cwd / "em-module.zip").exists()


def test_publish_reports_preview_urls(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    _write_descriptor(ctx)
    (ctx.cwd / "em-module.zip").write_bytes(b"PK-zip")
    session.request.return_value = _upload_url_response(
        tenantsPreviewUrls=[{"tenantId": "AA", "url": "u1"}, {"tenantId": "BB", "url": "u2"}]
    )
    session.post.return_value = _FakeResponse(status=204, raw=b"")

    rc = cli.main(["publish", "em-module.zip"], ctx=ctx)

    assert rc == 0
    assert session.request.call_args.kwargs["json"]["moduleId"] == "mod-001"
    post_args, post_kwargs = session.post.call_args
    assert post_args == ("https://s3/x",)
    assert post_kwargs["data"] == [("key", "v")]
    assert post_kwargs["files"]["file"][1] == b"PK-zip"

    out = capsys.readouterr().out.splitlines()
    primary = out.index("Preview URL: https://preview/1")
    tenant_a = out.index("Preview URL [AA]: u1")
    tenant_b = out.index("Preview URL [BB]: u2")
    assert primary < tenant_a < tenant_b


def test_publish_registry_rejection(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    _write_descriptor(ctx)
    (ctx.cwd / "em-module.zip").write_bytes(b"PK-zip")
    session.request.return_value = _FakeResponse(status=400, raw=b'{"message":"bad module"}')

    rc = cli.main(["publish", "em-module.zip"], ctx=ctx)

    assert rc == 1
    assert '{"message":"bad module"}' in capsys.readouterr().err
    session.post.assert_not_called()


def test_publish_without_module_id(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    _write_descriptor(ctx, module_id=None)
    (ctx.cwd / "em-module.zip").write_bytes(b"PK-zip")

    rc = cli.main(["publish", "em-module.zip"], ctx=ctx)

    assert rc == 2
    assert "has no moduleId" in capsys.readouterr().err
    session.request.assert_not_called()


def test_package_then_publish(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    _write_descriptor(ctx)
    _make_build(ctx)
    session.request.return_value = _upload_url_response()
    session.post.return_value = _FakeResponse(status=204, raw=b"")

    rc = cli.main(["package", "--publish"], ctx=ctx)

    assert rc == 0
    assert session.post.call_args.kwargs["files"]["file"][0] == "em-module.zip"
    assert "Preview URL: https://preview/1" in capsys.readouterr().out


def test_transport_error_message_only_without_debug(ctx: cli.CommandContext, session, capsys):
    _configure_account(ctx)
    _write_descriptor(ctx)
    (ctx.cwd / "em-module.zip").write_bytes(b"PK-zip")
    session.request.side_effect = requests.ConnectionError("connection refused")

    rc = cli.main(["publish", "em-module.zip"], ctx=ctx)

    assert rc == 1
    err = capsys.readouterr().err
    assert "connection refused" in err
    assert "Traceback" not in err


def test_transport_error_traceback_with_debug(ctx: cli.CommandContext, session, capsys):
    _configure_account(ctx)
    _write_descriptor(ctx)
    (ctx.cwd / "em-module.zip").write_bytes(b"PK-zip")
    session.request.side_effect = requests.ConnectionError("connection refused")

    rc = cli.main(["--debug", "publish", "em-module.zip"], ctx=ctx)

    assert rc == 1
    assert "Traceback" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# list-modules
# ---------------------------------------------------------------------------


_MODULES = [
    {"_id": "m2", "name": "Beta", "forTenants": ["AA", "BB"], "createdBy": "user01", "v": 3},
    {"_id": "m1", "name": "Alpha", "forTenants": "*", "createdBy": "someone"},
]


def test_list_modules_renders_rows_in_order(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    session.request.return_value = _FakeResponse(payload=_MODULES)

    rc = cli.main(["list-modules"], ctx=ctx)

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split(" | ") == ["(index)", "_id", "name ", "forTenants", "createdBy"]
    assert len(lines) == 4
    assert "m2" in lines[2] and "AA,BB" in lines[2]
    assert "m1" in lines[3] and "someone" in lines[3]
    assert "v" not in lines[0].split()


def test_list_modules_mine_filters_by_user(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    session.request.return_value = _FakeResponse(payload=_MODULES)

    rc = cli.main(["list-modules", "--mine"], ctx=ctx)

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 3
    assert "m2" in lines[2]


def test_api_base_url_from_environment(ctx: cli.CommandContext, session, monkeypatch) -> None:
    ctx.identities.set(
        "default", AccountIdentity(account_id="acct01", user_id="user01", user_api_key=API_KEY)
    )
    monkeypatch.setenv("EM_REGISTRY_API_URL", "https://env.example.com/v2")
    session.request.return_value = _FakeResponse(payload=[])

    assert cli.main(["list-modules"], ctx=ctx) == 0
    assert session.request.call_args.args[1] == "https://env.example.com/v2/list-modules"


def test_missing_api_base_url(ctx: cli.CommandContext, capsys) -> None:
    ctx.identities.set(
        "default", AccountIdentity(account_id="acct01", user_id="user01", user_api_key=API_KEY)
    )

    assert cli.main(["list-modules"], ctx=ctx) == 2
    assert "Registry API URL not set" in capsys.readouterr().err


def test_list_modules_non_string_created_by(ctx: cli.CommandContext, session, capsys) -> None:
    _configure_account(ctx)
    session.request.return_value = _FakeResponse(
        payload=[{"_id": "m1", "name": "A", "forTenants": "*", "createdBy": 42}]
    )

    rc = cli.main(["list-modules"], ctx=ctx)

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 3
    assert lines[2].split(" | ")[-1] == "42"
