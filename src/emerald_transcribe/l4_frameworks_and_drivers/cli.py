"""CLI entry point for emerald-transcribe."""

from __future__ import annotations

import re
import sys
from datetime import datetime
from pathlib import Path

import click

from emerald_transcribe import __version__


def _make_session_dir(base_dir: Path, label: str | None) -> Path:
    """Create a timestamped session subdirectory under base_dir."""
    stamp = datetime.now().strftime('%Y-%m-%d_%H%M%S')
    if label:
        safe_label = re.sub(r'[^\w\-]', '_', label)
        name = f'{stamp}_{safe_label}'
    else:
        name = stamp
    session_dir = base_dir / name
    session_dir.mkdir(parents=True, exist_ok=True)
    return session_dir


def _build_overrides(output_dir: str | None, language: str | None, device: str | None) -> dict:
    overrides: dict = {}
    if output_dir:
        overrides['output'] = {'directory': output_dir}
    if language:
        overrides['transcription'] = {'language': language}
    if device:
        overrides['device'] = device
    return overrides


@click.command()
@click.argument('media_file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '-c',
    '--config',
    'config_path',
    default=None,
    type=click.Path(exists=True),
    help='Path to YAML config file.',
)
@click.option(
    '-o',
    '--output-dir',
    default=None,
    type=click.Path(),
    help='Base output directory (session subfolder created automatically).',
)
@click.option('-l', '--language', default=None, help="Spoken language code (e.g. 'en', 'de').")
@click.option(
    '-d',
    '--device',
    default=None,
    type=click.Choice(['auto', 'accelerated', 'portable']),
    help='Compute profile; auto probes for a GPU backend.',
)
@click.option('--mime-type', default=None, help='Override the media type guessed from the file name.')
@click.option('--label', default=None, help="Session label appended to the timestamp folder (e.g. 'interview').")
@click.version_option(version=__version__)
def cli(media_file, config_path, output_dir, language, device, mime_type, label):
    """emerald -- on-device speech transcription with word-level timestamps."""
    from pydantic import ValidationError  # noqa: PLC0415 -- deferred: not needed for --help

    from emerald_transcribe.l3_interface_adapters.gateways.yaml_config_loader import (  # noqa: PLC0415 -- deferred: yaml stack not loaded on --help
        YamlConfigLoader,
    )
    from emerald_transcribe.l4_frameworks_and_drivers.infra_config import (  # noqa: PLC0415 -- deferred: not needed for --help
        InfraConfig,
        build_app_config,
    )

    try:
        overrides = _build_overrides(output_dir, language, device)
        raw = YamlConfigLoader().load_raw(config_path, overrides=overrides or None)
        config = build_app_config(raw)
        infra = InfraConfig.model_validate(raw)
    except ValidationError as e:
        click.echo(f'Error: invalid configuration\n{e}', err=True)
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)

    base_dir = Path(output_dir or config.output.directory)
    out_dir = _make_session_dir(base_dir, label)

    from emerald_transcribe.l4_frameworks_and_drivers.batch_runner import (  # noqa: PLC0415 -- deferred: worker stack not loaded on --help
        run_batch,
    )
    from emerald_transcribe.l4_frameworks_and_drivers.logging_setup import (  # noqa: PLC0415 -- deferred: not needed for --help
        setup_file_logging,
    )

    setup_file_logging(out_dir)
    run_batch(
        media_path=Path(media_file),
        config=config,
        out_dir=out_dir,
        infra=infra,
        mime_type=mime_type,
    )
