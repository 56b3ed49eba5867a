from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Optional, Tuple

import click

from . import __version__
from .api import SalesforceAPI, SFConfig
from .env_loader import load_env_files
from .exceptions import MissingCredentialsError, SoapFaultError
from .logging_config import configure_logging
from .query import RecordCounter
from .utils import load_records, write_results_csv

_logger = logging.getLogger(__name__)

# Load .env very early, so everything else sees env vars
load_env_files()

_CREDENTIALS_HELP = (
    "Set these environment variables (or create a .env file):\n"
    "  SF_USERNAME=...\n"
    "  SF_PASSWORD=...\n"
    "  SF_SECURITY_TOKEN=...        # appended to the password\n"
    "  SF_LOGIN_URL=https://login.salesforce.com  # or https://test.salesforce.com\n"
    "  SF_API_VERSION=60.0          # optional\n\n"
    "Or reuse an existing session with SF_SESSION_ID and SF_INSTANCE_URL."
)


def _connected_api() -> SalesforceAPI:
    api = SalesforceAPI(SFConfig.from_env())
    try:
        api.connect()
    except MissingCredentialsError as e:
        needed = ", ".join(e.missing)
        raise click.ClickException(
            f"Missing Salesforce credentials: {needed}\n\n{_CREDENTIALS_HELP}"
        ) from e
    except SoapFaultError as e:
        raise click.ClickException(f"Login failed: {e}") from e
    api.show_progress = True
    return api


def _echo_results(results, out: Optional[str]) -> None:
    if out:
        n = write_results_csv(out, results)
        click.echo(f"Wrote {n} result(s) to {out}")
        return
    click.echo(json.dumps([asdict(r) for r in results], indent=2))
    failed = sum(1 for r in results if not r.success)
    if failed:
        click.echo(f"{failed} of {len(results)} record(s) failed", err=True)


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
)
@click.version_option(__version__, "--version", prog_name="sfcrud")
@click.option(
    "-v",
    "--verbose",
    "loglevel",
    flag_value=logging.INFO,
    default=None,
    help="Enable INFO logs.",
)
@click.option(
    "-vv",
    "--very-verbose",
    "loglevel",
    flag_value=logging.DEBUG,
    help="Enable DEBUG logs.",
)
@click.pass_context
def cli(ctx: click.Context, loglevel: Optional[int]) -> None:
    """Salesforce CRUD over the Partner SOAP API."""
    configure_logging(loglevel)
    _logger.debug("CLI start, version=%s", __version__)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("login")
def cmd_login() -> None:
    """Log in and show the instance URL."""
    api = _connected_api()
    click.echo(f"✅  Connected to {api.instance_url}")


@cli.command("query")
@click.argument("soql")
@click.option("--all", "include_archived", is_flag=True, help="Use queryAll (deleted/archived).")
@click.option("--pretty", is_flag=True, help="Pretty-print JSON.")
@click.option("--count", "count_only", is_flag=True, help="Only print the number of records.")
def cmd_query(soql: str, include_archived: bool, pretty: bool, count_only: bool) -> None:
    """Run a SOQL query, following queryMore to the last page."""
    api = _connected_api()
    params = {"query": soql, "callback": RecordCounter()} if count_only else soql
    run = api.query_all if include_archived else api.query
    try:
        res = run(params)
    except SoapFaultError as e:
        raise click.ClickException(str(e)) from e

    if count_only:
        click.echo(res)
    else:
        click.echo(json.dumps(res, indent=2 if pretty else None))


def _write_command(name: str):
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    @click.option("--type", "sobject_type", help="sObject type for records without one.")
    @click.option("--out", type=click.Path(dir_okay=False), help="Write results to CSV.")
    def command(path: str, sobject_type: Optional[str], out: Optional[str]) -> None:
        records = load_records(path, sobject_type)
        api = _connected_api()
        try:
            results = getattr(api, name)(*records)
        except SoapFaultError as e:
            raise click.ClickException(str(e)) from e
        _echo_results(results, out)

    command.__doc__ = f"{name.capitalize()} records read from a CSV or JSON file."
    return cli.command(name)(command)


cmd_create = _write_command("create")
cmd_update = _write_command("update")


def _ids_command(name: str):
    @click.argument("ids", nargs=-1, required=True)
    @click.option("--out", type=click.Path(dir_okay=False), help="Write results to CSV.")
    def command(ids: Tuple[str, ...], out: Optional[str]) -> None:
        api = _connected_api()
        try:
            results = getattr(api, name)(*ids)
        except SoapFaultError as e:
            raise click.ClickException(str(e)) from e
        _echo_results(results, out)

    command.__doc__ = f"{name.capitalize()} records by Id."
    return cli.command(name)(command)


cmd_delete = _ids_command("delete")
cmd_undelete = _ids_command("undelete")


@cli.command("retrieve")
@click.argument("ids", nargs=-1, required=True)
@click.option("--type", "sobject_type", required=True, help="sObject type, e.g. Account.")
@click.option("--fields", required=True, help="Comma-separated field list, e.g. Id,Name.")
@click.option("--pretty", is_flag=True, help="Pretty-print JSON.")
def cmd_retrieve(ids: Tuple[str, ...], sobject_type: str, fields: str, pretty: bool) -> None:
    """Retrieve records by Id."""
    api = _connected_api()
    field_list = [f.strip() for f in fields.split(",") if f.strip()]
    try:
        res = api.retrieve(*ids, fields=field_list, sobject_type=sobject_type)
    except SoapFaultError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(res, indent=2 if pretty else None))
