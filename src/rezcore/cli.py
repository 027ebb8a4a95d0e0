"""
CLI utilities for restore plan and audit replay agreement checks
"""

import json
import sys
import functools
from dataclasses import replace
from typing import Any, Dict, List

import click
from pydantic import ValidationError
from tabulate import tabulate

from rezcore.audit.legacy import from_legacy_auth_audit_event, from_legacy_restore_job_audit_event
from rezcore.audit.replay_order import (
    ReplayBatchError,
    build_replay_batch,
    find_duplicate_audit_events,
    replay_summary,
    validate_replay_batch,
)
from rezcore.canonical.canonical_utils import CanonicalizationError, canonical_json, stable_hash, to_canonical_value
from rezcore.config import LOG_LEVELS, OUTPUT_FORMATS, CoreConfig, configure_logging, load_config
from rezcore.contracts.audit_v1 import CrossServiceAuditEvent
from rezcore.contracts.restore_v1 import RestorePitRowTuple, RestorePlanHashInput
from rezcore.restore.pit import EmptyInputError, select_latest_pit_row_tuple, sorted_pit_row_tuples
from rezcore.restore.plan_hash import compute_restore_plan_hash, verify_restore_plan_hash
from rezcore.timestamps import MalformedTimestampError, utc_now_iso_millis

HANDLED_ERRORS = (
    ValidationError,
    CanonicalizationError,
    MalformedTimestampError,
    EmptyInputError,
    ReplayBatchError,
)


@click.group()
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              help='Override REZCORE_LOG_LEVEL')
@click.option('--format', 'output_format', type=click.Choice(OUTPUT_FORMATS),
              help='Override REZCORE_OUTPUT_FORMAT')
@click.pass_context
def cli(ctx: click.Context, log_level: str, output_format: str):
    """Restore plan and audit replay agreement tooling"""
    config = load_config()
    if log_level:
        config = replace(config, log_level=log_level.upper())
    if output_format:
        config = replace(config, output_format=output_format)

    configure_logging(config.log_level)
    ctx.obj = config


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _describe(error: Exception) -> str:
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        location = '.'.join(str(part) for part in first['loc']) or '$'
        return f"{error.error_count()} validation error(s) for {error.title}; first at {location}: {first['msg']}"
    return str(error)


def _handle_errors(command):
    """Turn core errors into a one-line message and exit code 1"""

    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        try:
            return command(*args, **kwargs)
        except HANDLED_ERRORS as e:
            _fail(_describe(e))

    return wrapper


def _load_json(path: str, label: str) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        _fail(f"{label} file not found: {path}")
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {label} file: {e}")


def _load_json_list(path: str, label: str) -> List[Any]:
    data = _load_json(path, label)
    if not isinstance(data, list):
        _fail(f"{label} file must contain a JSON array")
    return data


def _dump_json(data: Any) -> str:
    return json.dumps(to_canonical_value(data), indent=2, ensure_ascii=False)


def _display(config: CoreConfig, title: str, rows: List[List[Any]], payload: Dict[str, Any]):
    if config.output_format == 'json':
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    click.echo("\n" + "=" * 60)
    click.echo(title)
    click.echo("=" * 60)
    click.echo(tabulate(rows, headers=['Field', 'Value'], tablefmt='grid'))


def _write_output(path: str, text: str):
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
        f.write("\n")


@cli.command()
@click.argument('data_file')
@click.option('--hash', 'show_hash', is_flag=True, help='Also print the SHA-256 of the canonical text')
@_handle_errors
def canonicalize(data_file: str, show_hash: bool):
    """Print the canonical JSON of a data file"""
    data = _load_json(data_file, 'Data')
    canonical = canonical_json(data)

    click.echo(canonical)
    if show_hash:
        click.echo(f"Canonical hash: {stable_hash(canonical)}")


@cli.command('plan-hash')
@click.argument('plan_file')
@click.option('--output', '-o', help='Write {canonical_json, plan_hash} evidence to this path')
@click.pass_obj
@_handle_errors
def plan_hash(config: CoreConfig, plan_file: str, output: str):
    """Compute the plan hash of a restore plan hash input"""
    plan_input = RestorePlanHashInput.model_validate(_load_json(plan_file, 'Plan'))
    result = compute_restore_plan_hash(plan_input)

    rows = [
        ['Plan Hash', result.plan_hash],
        ['Algorithm', plan_input.plan_hash_algorithm],
        ['Input Version', plan_input.plan_hash_input_version],
        ['Rows', len(plan_input.rows)],
        ['Media Candidates', len(plan_input.media_candidates)],
        ['Canonical Length', f"{len(result.canonical_json)} characters"],
    ]
    _display(config, "RESTORE PLAN HASH", rows, result.to_dict())

    if output:
        _write_output(output, json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        click.echo(f"Plan hash evidence saved to: {output}")


@cli.command('verify-plan-hash')
@click.argument('plan_file')
@click.argument('expected_hash')
@_handle_errors
def verify_plan_hash(plan_file: str, expected_hash: str):
    """Check a restore plan hash input against an approved plan hash"""
    plan_input = RestorePlanHashInput.model_validate(_load_json(plan_file, 'Plan'))

    if not verify_restore_plan_hash(plan_input, expected_hash):
        computed = compute_restore_plan_hash(plan_input).plan_hash
        _fail(f"plan hash mismatch: expected {expected_hash}, computed {computed}")

    click.echo("Plan hash verified")


@cli.command('pit-latest')
@click.argument('tuples_file')
@click.pass_obj
@_handle_errors
def pit_latest(config: CoreConfig, tuples_file: str):
    """Select the authoritative version among PIT row tuples"""
    tuples = [RestorePitRowTuple.model_validate(item) for item in _load_json_list(tuples_file, 'PIT tuples')]
    winner = select_latest_pit_row_tuple(tuples)

    if config.output_format == 'json':
        click.echo(_dump_json(winner))
        return

    table = [
        [
            '*' if row is winner else '',
            row.sys_updated_on,
            '' if row.sys_mod_count is None else row.sys_mod_count,
            row.event_time,
            row.event_id,
        ]
        for row in sorted_pit_row_tuples(tuples)
    ]
    click.echo(tabulate(
        table,
        headers=['Latest', 'sys_updated_on', 'sys_mod_count', '__time', 'event_id'],
        tablefmt='grid',
    ))
    click.echo(f"\nLatest event_id: {winner.event_id}")


@cli.command('replay-sort')
@click.argument('events_file')
@click.option('--generated-at', help='Batch generation time (defaults to now, UTC)')
@click.option('--output', '-o', help='Write the replay batch to this path')
@_handle_errors
def replay_sort(events_file: str, generated_at: str, output: str):
    """Sort audit events into a validated replay batch"""
    events = _load_json_list(events_file, 'Audit events')
    batch = build_replay_batch(events, generated_at or utc_now_iso_millis())
    text = _dump_json(batch)

    if output:
        _write_output(output, text)
        click.echo(f"Replay batch of {len(batch.events)} events saved to: {output}")
    else:
        click.echo(text)


@cli.command('replay-validate')
@click.argument('batch_file')
@click.pass_obj
@_handle_errors
def replay_validate(config: CoreConfig, batch_file: str):
    """Validate that a replay batch is sorted and free of duplicates"""
    data = _load_json(batch_file, 'Replay batch')
    raw_events = data.get('events', []) if isinstance(data, dict) else data
    if not isinstance(raw_events, list):
        _fail("replay batch must be a JSON array or an object with an events array")

    events = [CrossServiceAuditEvent.model_validate(item) for item in raw_events]

    duplicates = find_duplicate_audit_events(events)
    for index, (service, event_id) in duplicates:
        click.echo(f"Duplicate {service}:{event_id} at index {index}", err=True)

    validate_replay_batch(events)

    summary = replay_summary(events)
    rows = [
        ['Total Events', summary['total_events']],
        ['First occurred_at', summary['first_occurred_at']],
        ['Last occurred_at', summary['last_occurred_at']],
    ]
    rows.extend([f"Events ({service})", count] for service, count in summary['per_service'].items())
    _display(config, "REPLAY BATCH VALID", rows, summary)


@cli.command('legacy-convert')
@click.argument('legacy_file')
@click.option('--kind', type=click.Choice(['auth', 'restore-job']), required=True, help='Legacy event family')
@click.option('--context', 'context_file', help='Restore job context file (tenant, instance, source, plan)')
@_handle_errors
def legacy_convert(legacy_file: str, kind: str, context_file: str):
    """Convert legacy audit events into unified audit events"""
    data = _load_json(legacy_file, 'Legacy events')
    legacy_events = data if isinstance(data, list) else [data]

    if kind == 'auth':
        converted = [from_legacy_auth_audit_event(event) for event in legacy_events]
    else:
        if not context_file:
            raise click.UsageError("--context is required for --kind restore-job")
        context = _load_json(context_file, 'Context')
        converted = [from_legacy_restore_job_audit_event(event, context) for event in legacy_events]

    click.echo(_dump_json(converted if isinstance(data, list) else converted[0]))


def main():
    cli()


if __name__ == '__main__':
    main()
