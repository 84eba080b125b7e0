import pytest
import requests

from consent_audit import main as cli
from consent_audit.directory import ProbeOutcome, ProbeResult
from consent_audit.errors import ConfigurationError, GraphError


def test_mode_flags_default_to_both():
    options = cli.build_options(cli.parse_args([]))

    assert options.delegated and options.application
    assert options.user_properties == ("DisplayName",)
    assert options.show_progress is False


def test_single_mode_and_user_properties():
    args = cli.parse_args(
        ["--application", "--user-property", "DisplayName", "--user-property", "Mail", "--precache-size", "50"]
    )
    options = cli.build_options(args)

    assert options.application and not options.delegated
    assert options.user_properties == ("DisplayName", "Mail")
    assert options.precache_size == 50


def test_unauthenticated_run_exits_without_output(monkeypatch, capsys):
    def not_connected(*args, **kwargs):
        raise ConfigurationError("Missing credentials: AZ_TENANT_ID")

    monkeypatch.setattr(cli, "GraphClient", not_connected)

    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 1
    assert capsys.readouterr().out == ""


def test_report_is_written_to_stdout(monkeypatch, capsys, tenant):
    monkeypatch.setattr(cli, "GraphClient", lambda *a, **kw: object())
    monkeypatch.setattr(cli, "DirectoryService", lambda client: tenant)

    cli.main(["--delegated"])

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == (
        "PermissionType,ClientName,ClientId,ResourceId,ResourceName,Permission,"
        "ConsentType,PrincipalId,PrincipalDisplayName"
    )
    assert len(lines) == 4
    assert lines[-1].endswith(",User.Read,Principal,u-alice,Alice Example")


def test_fatal_graph_error_exits_without_rows(monkeypatch, capsys, tenant):
    tenant.probe = ProbeResult(ProbeOutcome.FAILED, GraphError(403, "oauth2PermissionGrants", "Forbidden"))
    monkeypatch.setattr(cli, "GraphClient", lambda *a, **kw: object())
    monkeypatch.setattr(cli, "DirectoryService", lambda client: tenant)

    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 1
    assert capsys.readouterr().out == ""


def test_client_property_option():
    options = cli.build_options(cli.parse_args(["--client-property", "AppId", "--client-property", "SignInAudience"]))

    assert options.client_properties == ("AppId", "SignInAudience")
    assert cli.build_options(cli.parse_args([])).client_properties == ()


def test_token_transport_error_exits_without_output(monkeypatch, capsys):
    def unreachable(*args, **kwargs):
        raise requests.ConnectionError("login.microsoftonline.com unreachable")

    monkeypatch.setattr(cli, "GraphClient", unreachable)

    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 1
    assert capsys.readouterr().out == ""


def test_fatal_error_keeps_existing_output_file(monkeypatch, tmp_path, tenant):
    tenant.probe = ProbeResult(ProbeOutcome.FAILED, GraphError(403, "oauth2PermissionGrants", "Forbidden"))
    monkeypatch.setattr(cli, "GraphClient", lambda *a, **kw: object())
    monkeypatch.setattr(cli, "DirectoryService", lambda client: tenant)
    output = tmp_path / "report.csv"
    output.write_text("previous report\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        cli.main(["--output", str(output)])

    assert output.read_text(encoding="utf-8") == "previous report\n"


def test_report_is_written_to_output_file(monkeypatch, tmp_path, tenant):
    monkeypatch.setattr(cli, "GraphClient", lambda *a, **kw: object())
    monkeypatch.setattr(cli, "DirectoryService", lambda client: tenant)
    output = tmp_path / "report.jsonl"

    cli.main(["--delegated", "--format", "jsonl", "--output", str(output)])

    assert len(output.read_text(encoding="utf-8").splitlines()) == 3
