import json
import sys
from pathlib import Path

import click

from .log import LOG_LEVELS, configure_logging
from .pipeline import (
    SUPPORTED_TARGETS,
    AtomicWriter,
    CodeGeneratorConfig,
    PipelineGenerator,
    TypeGenerationError,
    load_config,
)


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(resolve_path=True))
@click.option("--lang", "-l", "languages", multiple=True, type=click.Choice(SUPPORTED_TARGETS), help="Target language (repeatable, default: all)")
@click.option("--output-file", "-o", default=None, type=click.Path(resolve_path=True), help="Write the single target's output to this file")
@click.option("--output-folder", "-d", default=None, type=click.Path(file_okay=False, resolve_path=True), help="Write every output buffer into this folder")
@click.option("--config", "-c", default=None, type=click.Path(exists=True, dir_okay=False, resolve_path=True), help="JSON or TOML configuration file")
@click.option("--strict", is_flag=True, default=False, help="Treat unknown types and unparsed syntax as errors")
@click.option("--exclude", multiple=True, help="Glob of paths to skip (repeatable)")
@click.option("--multi-file", is_flag=True, default=False, help="One output file per source module")
@click.option("--generate-config-file", default=None, type=click.Path(dir_okay=False, resolve_path=True), help="Write the default configuration as JSON and exit")
@click.option("--log-level", default="WARNING", type=click.Choice(LOG_LEVELS, case_sensitive=False))
@click.option("--log-json", is_flag=True, default=False, help="Log JSON lines instead of console text")
def rust_types_to_code(
    paths,
    languages,
    output_file,
    output_folder,
    config,
    strict,
    exclude,
    multi_file,
    generate_config_file,
    log_level,
    log_json,
):
    """Generate target language types from Rust sources marked with #[typeshare]."""
    configure_logging(log_level, log_json)

    if config is not None:
        try:
            config = load_config(config)
        except (ValueError, OSError) as e:
            raise click.BadParameter(str(e), param_hint="--config") from e
    else:
        config = CodeGeneratorConfig()

    if generate_config_file is not None:
        with open(generate_config_file, "w") as f:
            json.dump(config.to_dict(), f, indent=2)
            f.write("\n")
        return

    if not paths:
        raise click.UsageError("at least one source path is required")
    if output_file is not None and output_folder is not None:
        raise click.UsageError("--output-file and --output-folder are mutually exclusive")

    # CLI flags override the configuration file
    if languages:
        config.targets = list(languages)
    if strict:
        config.strict_mode = True
    if exclude:
        config.exclude_patterns = [*config.exclude_patterns, *exclude]
    if multi_file:
        config.multi_file = True

    if output_file is not None and (len(config.active_targets()) != 1 or config.multi_file):
        raise click.UsageError("--output-file needs exactly one --lang and no --multi-file")

    codegen = PipelineGenerator(config)
    result = codegen.generate_from_paths(paths)

    for diagnostic in result.diagnostics:
        click.echo(diagnostic.format(), err=True)

    failed = result.has_errors
    writer = AtomicWriter()
    for output in result.outputs.values():
        if not output.ok:
            continue
        try:
            if output_file is not None:
                for buffer in output.buffers:
                    writer.write(Path(output_file), buffer.content, buffer.target)
            elif output_folder is not None:
                writer.write_buffers(output.buffers, Path(output_folder))
            else:
                for buffer in output.buffers:
                    click.echo(buffer.content, nl=False)
        except (TypeGenerationError, OSError) as e:
            click.echo(f"{output.backend_id}: error: {e}", err=True)
            failed = True

    if failed:
        sys.exit(1)
