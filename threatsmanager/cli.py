"""ThreatsManager - Command Line Interface."""

import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from pydantic import ValidationError

from . import __version__
from .catalogs import get_severity_rating, initialize_standard_catalogs
from .config import get_settings
from .duplication import DuplicationDefinition
from .exceptions import DuplicationValidationError
from .logging_config import get_logger, setup_logging
from .model import ThreatModel
from .parser import (
    ThreatModelParseError, ThreatModelParser, check_references, discover_threat_models, from_document,
    load_threat_model, save_threat_model,
)
from .scope import scope_flags
from .threats import MitigationStatus


def _load_definition(everything: bool, definition: Optional[str]) -> DuplicationDefinition:
    if everything:
        return DuplicationDefinition.everything()
    if not definition:
        raise click.UsageError('Either --everything or --definition is required')
    try:
        with open(definition, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        return DuplicationDefinition.model_validate(data)
    except yaml.YAMLError as e:
        raise click.BadParameter(f'YAML parse error: {e}', param_hint='--definition')
    except ValidationError as e:
        raise click.BadParameter(f'Invalid definition: {e}', param_hint='--definition')


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """ThreatsManager - threat model engine."""
    settings = get_settings()
    if verbose:
        settings = settings.model_copy(update={'log_level': 'DEBUG'})
    setup_logging(settings)
    get_logger(__name__, settings).debug('Model file name: %s', settings.model_file_name)


@cli.command()
@click.argument('model_path', type=click.Path(exists=False))
@click.option('--name', '-n', prompt='Threat model name', help='Name of the threat model')
@click.option('--owner', '-w', default=None, help='Owner of the threat model')
def init(model_path: str, name: str, owner: Optional[str]):
    """Initialize a new threat model folder."""
    settings = get_settings()
    model_dir = Path(model_path)

    if model_dir.exists():
        click.echo(click.style(f'Directory already exists: {model_path}', fg='red'), err=True)
        sys.exit(1)

    model_dir.mkdir(parents=True)
    model = ThreatModel(name)
    model.owner = owner or settings.default_owner
    added = initialize_standard_catalogs(model) if settings.standard_catalogs else 0
    path = save_threat_model(model, model_dir)

    click.echo(click.style('Threat model initialized successfully!', fg='green'))
    click.echo(f'  Location: {path}')
    click.echo(f'  ID: {model.id}')
    click.echo(f'  Standard catalog entries: {added}')


@cli.command()
@click.argument('model_path', type=click.Path(exists=True))
@click.option('--recursive', '-r', is_flag=True, help='Validate every model found under MODEL_PATH')
def validate(model_path: str, recursive: bool):
    """Validate a threat model document or folder."""
    paths = discover_threat_models(model_path) if recursive else [Path(model_path)]
    if not paths:
        click.echo(click.style('No threat models found.', fg='yellow'))
        return

    failed = 0
    for path in paths:
        try:
            model = from_document(ThreatModelParser(path).parse_document())
        except ThreatModelParseError as e:
            click.echo(click.style(f'Validation failed: {e}', fg='red'), err=True)
            failed += 1
            continue
        reasons = check_references(model)
        if reasons:
            click.echo(click.style(f'Validation failed: {model.name}', fg='red'), err=True)
            for reason in reasons:
                click.echo(f'  - {reason}', err=True)
            failed += 1
            continue
        click.echo(click.style('Validation successful!', fg='green'))
        click.echo(f'  Model: {model.name}')
        click.echo(f'  ID: {model.id}')
        click.echo(f'  Entities: {len(model.entities)}')
        click.echo(f'  Flows: {len(model.data_flows)}')
        click.echo(f'  Threat Types: {len(model.threat_types)}')
        click.echo(f'  Threat Events: {model.total_threat_events}')

    if failed:
        sys.exit(1)


@cli.command()
@click.argument('model_path', type=click.Path(exists=True))
def summary(model_path: str):
    """Show the threat and mitigation statistics of a model."""
    try:
        model = load_threat_model(model_path)
    except ThreatModelParseError as e:
        click.echo(click.style(f'Failed to load model: {e}', fg='red'), err=True)
        sys.exit(1)

    click.echo(click.style(model.name, bold=True))
    click.echo(f'  Threat Events: {model.total_threat_events}')
    click.echo(f'    Fully mitigated: {model.fully_mitigated_threat_events}')
    click.echo(f'    Partially mitigated: {model.partially_mitigated_threat_events}')
    click.echo(f'    Not mitigated: {model.not_mitigated_threat_events}')
    click.echo(f'  Threat Types in use: {model.assigned_threat_types} of {len(model.threat_types)}')
    click.echo(f'  Unique Mitigations: {model.unique_mitigations}')

    click.echo('\nBy severity:')
    for severity in reversed(model.severities):
        click.echo(f'  {severity.name} [{get_severity_rating(severity.id)}]: '
                   f'{model.count_threat_events(severity.id)} threat events, '
                   f'{model.count_threat_events_by_type(severity.id)} threat types')

    click.echo('\nMitigations by status:')
    for status in MitigationStatus:
        count = model.count_mitigations_by_status(status)
        if count:
            click.echo(f'  {status.value}: {count}')


@cli.command()
@click.argument('model_path', type=click.Path(exists=True))
def schemas(model_path: str):
    """List the property schemas of a model."""
    try:
        model = load_threat_model(model_path)
    except ThreatModelParseError as e:
        click.echo(click.style(f'Failed to load model: {e}', fg='red'), err=True)
        sys.exit(1)

    if not model.schemas:
        click.echo(click.style('No property schemas defined in this threat model.', fg='yellow'))
        return

    for schema in model.schemas:
        flags = ' [auto]' if schema.auto_apply else ''
        labels = ', '.join(x.label for x in scope_flags(schema.applies_to)) or 'nothing'
        click.echo(f'{schema}{flags}  priority={schema.priority}  applies to: {labels}')
        for property_type in schema.property_types:
            click.echo(f'  - {property_type.name} ({property_type.kind.value})')


@cli.command(name='apply-schema')
@click.argument('model_path', type=click.Path(exists=True))
@click.argument('name')
@click.option('--namespace', '-n', required=True, help='Namespace of the schema')
def apply_schema(model_path: str, name: str, namespace: str):
    """Reconcile every object in scope of a schema and save the model."""
    try:
        model = load_threat_model(model_path)
    except ThreatModelParseError as e:
        click.echo(click.style(f'Failed to load model: {e}', fg='red'), err=True)
        sys.exit(1)

    schema = model.get_schema(name, namespace)
    if schema is None:
        click.echo(click.style(f'Schema not found: {name} ({namespace})', fg='red'), err=True)
        sys.exit(1)

    model.apply_schema(schema.id)
    if model.is_dirty:
        save_threat_model(model, model_path)
        click.echo(click.style(f'Schema {schema} applied.', fg='green'))
    else:
        click.echo(f'Schema {schema} already applied, nothing changed.')


@cli.command(name='remove-schema')
@click.argument('model_path', type=click.Path(exists=True))
@click.argument('name')
@click.option('--namespace', '-n', required=True, help='Namespace of the schema')
@click.option('--force', '-f', is_flag=True, help='Also remove the properties created from the schema')
def remove_schema(model_path: str, name: str, namespace: str, force: bool):
    """Remove a property schema and save the model."""
    try:
        model = load_threat_model(model_path)
    except ThreatModelParseError as e:
        click.echo(click.style(f'Failed to load model: {e}', fg='red'), err=True)
        sys.exit(1)

    if model.get_schema(name, namespace) is None:
        click.echo(click.style(f'Schema not found: {name} ({namespace})', fg='red'), err=True)
        sys.exit(1)

    if not model.remove_schema(name, namespace, force=force):
        click.echo(click.style(f'Schema {name} ({namespace}) is in use; use --force to remove it.', fg='red'),
                   err=True)
        sys.exit(1)

    save_threat_model(model, model_path)
    click.echo(click.style(f'Schema {name} ({namespace}) removed.', fg='green'))


@cli.command()
@click.argument('source_path', type=click.Path(exists=True))
@click.argument('output_path', type=click.Path(exists=False))
@click.option('--name', '-n', required=True, help='Name of the new threat model')
@click.option('--everything', is_flag=True, help='Duplicate every object of the source')
@click.option('--definition', '-d', type=click.Path(exists=True, dir_okay=False),
              help='YAML file selecting the objects to duplicate')
def duplicate(source_path: str, output_path: str, name: str, everything: bool, definition: Optional[str]):
    """Create a new threat model from a selection of another."""
    selection = _load_definition(everything, definition)
    try:
        source = load_threat_model(source_path)
        result = source.duplicate(name, selection)
    except ThreatModelParseError as e:
        click.echo(click.style(f'Failed to load model: {e}', fg='red'), err=True)
        sys.exit(1)
    except DuplicationValidationError as e:
        click.echo(click.style('Duplication rejected:', fg='red'), err=True)
        for reason in e.reasons:
            click.echo(f'  - {reason}', err=True)
        sys.exit(1)

    output = Path(output_path)
    if output.suffix in ('.yaml', '.yml', '.json'):
        output.parent.mkdir(parents=True, exist_ok=True)
    else:
        output.mkdir(parents=True, exist_ok=True)
    path = save_threat_model(result, output)
    click.echo(click.style('Threat model duplicated successfully!', fg='green'))
    click.echo(f'  Output: {path}')
    click.echo(f'  ID: {result.id}')


@cli.command()
@click.argument('target_path', type=click.Path(exists=True))
@click.argument('source_path', type=click.Path(exists=True))
@click.option('--everything', is_flag=True, help='Merge every catalog and schema of the source')
@click.option('--definition', '-d', type=click.Path(exists=True, dir_okay=False),
              help='YAML file selecting the objects to merge')
def merge(target_path: str, source_path: str, everything: bool, definition: Optional[str]):
    """Merge schemas and catalogs of SOURCE_PATH into TARGET_PATH."""
    selection = _load_definition(everything, definition)
    try:
        target = load_threat_model(target_path)
        source = load_threat_model(source_path)
    except ThreatModelParseError as e:
        click.echo(click.style(f'Failed to load model: {e}', fg='red'), err=True)
        sys.exit(1)

    reasons = source.validate_duplication(selection)
    if reasons:
        click.echo(click.style('Merge rejected:', fg='red'), err=True)
        for reason in reasons:
            click.echo(f'  - {reason}', err=True)
        sys.exit(1)

    target.merge(source, selection)
    save_threat_model(target, target_path)
    click.echo(click.style(f'Merged {source.name} into {target.name}.', fg='green'))


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
