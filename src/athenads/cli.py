#
#  Copyright (C) 2017-2025 Dremio Corporation
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#
import asyncio
import logging
from json import load
from pathlib import Path
from typing import Annotated, List, Optional

from click import Choice
from rich import console, table, print as pp
from typer import Argument, BadParameter, Option, Typer

from athenads import log
from athenads.config import settings
from athenads.datasource import AthenaDataSource
from athenads.dispatcher import result_to_frames
from athenads.frames.builder import FrameBuilder
from athenads.frames.shaping import parse_result_set, shape_result
from athenads.frames.types import (
    FormatType,
    OutputFrame,
    QueryDescriptor,
    QueryType,
    TimeRange,
    fill_defaults,
)

ty = Typer(context_settings=dict(help_option_names=["-h", "--help"]))


@ty.callback()
def main(
    config_file: Annotated[
        Optional[Path],
        Option("-c", "--cfg", help="The config yaml for various options"),
    ] = None,
    log_level: Annotated[
        Optional[str],
        Option(
            help="The log level", click_type=Choice(list(logging._nameToLevel.keys()))
        ),
    ] = "WARNING",
    enable_json_logging: Annotated[
        Optional[bool], Option(help="Enable JSON logs")
    ] = False,
):
    log.configure(log_level, json_logs=enable_json_logging)
    log.set_level(log_level)
    if config_file is not None:
        settings.configure(config_file, force=True)


def print_frames(frames: List[OutputFrame], use_df: bool = False):
    c = console.Console()
    for frame in frames:
        title = f"{frame.ref_id}" + (f" - {frame.name}" if frame.name else "")
        if use_df:
            c.rule(title)
            pp(frame.to_dataframe())
            continue
        t = table.Table(title=title)
        for f in frame.fields:
            t.add_column(f"{f.name} ({f.type.value})")
        for i in range(frame.length):
            t.add_row(*[str(f.values[i]) for f in frame.fields])
        c.print(t)


def _query_type(value: str) -> QueryType:
    try:
        return QueryType[value.upper()]
    except KeyError:
        raise BadParameter(f"Unknown query type {value}")


def _value_columns(value_columns: Optional[str]) -> Optional[tuple[str, ...]]:
    if value_columns is None:
        return None
    return tuple(c.strip() for c in value_columns.split(",") if c.strip())


@ty.command("health", help="Check connectivity to the backend proxy")
def health():
    result = asyncio.run(AthenaDataSource().check_health())
    pp(f"{result.status}: {result.message}")


@ty.command("named-queries", help="List the named queries of the work group")
def named_queries():
    values = asyncio.run(AthenaDataSource().list_named_queries())
    t = table.Table("text", "value")
    for v in values:
        t.add_row(str(v.text), str(v.value))
    console.Console().print(t)


@ty.command("query", help="Run a query through the backend proxy")
def query(
    start: Annotated[
        str, Option("--from", help="Range start, epoch ms or ISO-8601")
    ],
    end: Annotated[str, Option("--to", help="Range end, epoch ms or ISO-8601")],
    ref_id: Annotated[str, Option(help="The query refId")] = "A",
    query_type: Annotated[
        str,
        Option(help="The query type", click_type=Choice([q.name for q in QueryType])),
    ] = QueryType.NAMED_QUERY.name,
    named_query: Annotated[Optional[str], Option(help="The named query")] = None,
    execution_id: Annotated[
        Optional[str], Option(help="An existing query execution id")
    ] = None,
    format: Annotated[
        FormatType, Option(help="Result format")
    ] = FormatType.TIME_SERIES,
    time_column: Annotated[Optional[str], Option(help="The time column")] = None,
    metric_column: Annotated[Optional[str], Option(help="The metric column")] = None,
    value_columns: Annotated[
        Optional[str], Option(help="Comma separated value columns")
    ] = None,
    use_cache: Annotated[bool, Option(help="Reuse cached executions")] = True,
    use_df: Annotated[
        Optional[bool], Option(help="Convert results to pandas dataframe")
    ] = False,
):
    descriptor = QueryDescriptor(
        ref_id=ref_id,
        query_type=_query_type(query_type),
        named_query=named_query,
        execution_id=execution_id,
        format=format,
        time_column=time_column,
        metric_column=metric_column,
        value_columns=_value_columns(value_columns),
        use_cache=use_cache,
    )
    frames = asyncio.run(
        AthenaDataSource().query([descriptor], TimeRange.of(start, end))
    )
    print_frames(frames, use_df=use_df)


@ty.command("convert", help="Convert a saved GetQueryResults JSON file to frames")
def convert(
    results_file: Annotated[
        Path, Argument(help="JSON output of athena get-query-results")
    ],
    format: Annotated[
        FormatType, Option(help="Result format")
    ] = FormatType.TIME_SERIES,
    time_column: Annotated[Optional[str], Option(help="The time column")] = None,
    metric_column: Annotated[Optional[str], Option(help="The metric column")] = None,
    value_columns: Annotated[
        Optional[str], Option(help="Comma separated value columns")
    ] = None,
    use_df: Annotated[
        Optional[bool], Option(help="Convert results to pandas dataframe")
    ] = False,
):
    descriptor = fill_defaults(
        QueryDescriptor(
            ref_id="A",
            format=format,
            time_column=time_column,
            metric_column=metric_column,
            value_columns=_value_columns(value_columns),
        )
    )
    with results_file.open() as f:
        raw = parse_result_set(load(f))

    frames = result_to_frames(shape_result(raw, descriptor), descriptor, FrameBuilder())
    print_frames(frames, use_df=use_df)


tc = Typer(
    context_settings=dict(help_option_names=["-h", "--help"]),
    name="config",
    help="Configuration management",
)


@tc.command("list", help="Show the configuration in use")
def show_config(
    show_filename: Annotated[
        bool, Option(help="Show the filename for default config file")
    ] = False,
):
    if show_filename:
        dc = settings.default_config()
        pp(f"Default config file: {dc!s} (exists = {dc.exists()!s})")
    pp(settings.write_settings(dry_run=True))


@tc.command("create", help="Create a default configuration file")
def create_config(
    uri: Annotated[str, Option(help="The backend proxy URL")],
    datasource_id: Annotated[int, Option(help="The datasource id")],
    token: Annotated[
        Optional[str],
        Option(
            help="API token for the proxy. If it starts with @ the rest is treated as a filename"
        ),
    ] = None,
    region: Annotated[Optional[str], Option(help="The AWS region")] = None,
    work_group: Annotated[Optional[str], Option(help="The Athena work group")] = None,
    access_key: Annotated[Optional[str], Option(help="The AWS access key")] = None,
    role_arn: Annotated[
        Optional[str], Option(help="Assume this role instead of static keys")
    ] = None,
    dry_run: Annotated[
        bool, Option(help="Dry run, do not overwrite the config file. Just print it")
    ] = False,
):
    athena = settings.Athena.model_validate(
        {
            "uri": uri,
            "token": token,
            "datasource_id": datasource_id,
            "region": region,
            "work_group": work_group,
            "access_key": access_key,
            "auth_type": (
                settings.AuthType.ROLE_ARN if role_arn else settings.AuthType.STATIC
            ),
            "role_arn": role_arn,
        }
    )
    settings.configure(settings.default_config(), force=True)
    settings.instance().athena = athena
    if dry_run:
        pp(settings.write_settings(dry_run=True))
        return
    settings.write_settings()
    pp(f"Created default config file: {settings.default_config()!s}")


ty.add_typer(tc)


def cli():
    ty()


if __name__ == "__main__":
    cli()
