"""Command line front end: list operations, run a pipeline, export a script."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .core.errors import PipelineError
from .core.logging_config import LoggingConfigurator
from .core.settings import WorkbenchConfiguration
from .processing import catalog
from .processing.pipeline import Pipeline, PipelineStep
from .processing.registry import get_variant
from .session import WorkbenchSession


LOGGER = logging.getLogger(__name__)


def parse_step(text: str) -> Tuple[str, Dict[str, str]]:
    """Parse ``op`` or ``op:key=value,key=value`` into an operation and raw params."""

    operation, _, rest = text.partition(":")
    operation = operation.strip()
    if not operation:
        raise ValueError(f"Missing operation in step '{text}'")
    params: Dict[str, str] = {}
    for item in filter(None, (part.strip() for part in rest.split(","))):
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected key=value in step '{text}', got '{item}'")
        params[key.strip()] = value.strip()
    return operation, params


def build_pipeline(step_texts: Sequence[str], pipeline_file: Optional[str] = None) -> Pipeline:
    if pipeline_file:
        pipeline = Pipeline.from_dict(json.loads(Path(pipeline_file).read_text(encoding="utf-8")))
    else:
        pipeline = Pipeline()
    for text in step_texts:
        operation, params = parse_step(text)
        pipeline.append(PipelineStep(operation=operation, params=params))
    return pipeline


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pipeline-workbench",
        description="Run image-processing pipelines and export them as OpenCV scripts",
    )
    g_cfg = p.add_argument_group("Configuration")
    g_cfg.add_argument("--config", type=str, default=None, help="JSON configuration file")
    g_cfg.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    g_cfg.add_argument("--log_dir", type=str, default=None, help="Write a rotating log file here")

    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List operations by category")

    def add_steps(parser: argparse.ArgumentParser) -> None:
        g_steps = parser.add_argument_group("Pipeline")
        g_steps.add_argument(
            "-s",
            "--step",
            dest="steps",
            action="append",
            default=[],
            metavar="OP[:KEY=VALUE,...]",
            help="Append a step; repeat for more steps",
        )
        g_steps.add_argument("--pipeline", type=str, default=None, help="Pipeline JSON file")

    run = sub.add_parser("run", help="Execute a pipeline on an image")
    run.add_argument("image", type=str, help="Path to the input image")
    run.add_argument("-o", "--output", type=str, required=True, help="Path of the encoded result")
    add_steps(run)

    export = sub.add_parser("export", help="Print the equivalent OpenCV script")
    export.add_argument("-o", "--output", type=str, default=None, help="Write the script here")
    add_steps(export)

    return p


def _load_configuration(args: argparse.Namespace) -> WorkbenchConfiguration:
    config = WorkbenchConfiguration.load(args.config) if args.config else WorkbenchConfiguration()
    if args.verbose:
        config.developer_diagnostics = True
    if args.log_dir:
        config.log_directory = Path(args.log_dir)
        config.enable_file_logging = True
    return config


def _list_operations() -> List[str]:
    lines: List[str] = []
    for category in catalog.categories():
        lines.append(category)
        for identifier in catalog.operations_in(category):
            descriptor = catalog.get_operation(identifier)
            marker = "" if get_variant(identifier).implemented else " (identity)"
            defaults = ", ".join(
                f"{key}={value!r}" for key, value in catalog.defaults_for(identifier).items()
            )
            lines.append(f"  {identifier:<16}{descriptor.label}{marker}")
            if defaults:
                lines.append(f"  {'':<16}{defaults}")
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_argparser().parse_args(argv)
    try:
        config = _load_configuration(args)
    except (OSError, ValueError) as exc:
        print(f"error: cannot load configuration: {exc}", file=sys.stderr)
        return 2
    LoggingConfigurator(config.logging_options()).configure()

    if args.command == "list":
        print("\n".join(_list_operations()))
        return 0

    try:
        pipeline = build_pipeline(args.steps, args.pipeline)
    except (KeyError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    session = WorkbenchSession(configuration=config)

    if args.command == "export":
        for step in pipeline:
            session.pipeline.append(step)
        script = session.export_script()
        if args.output:
            Path(args.output).write_text(script, encoding="utf-8")
        else:
            sys.stdout.write(script)
        return 0

    with session:
        try:
            session.load_path(args.image)
        except OSError as exc:
            print(f"error: cannot read image '{args.image}': {exc}", file=sys.stderr)
            return 1
        for step in pipeline:
            session.pipeline.append(step)
        try:
            result = session.run()
        except PipelineError as exc:
            LOGGER.error("Pipeline run failed: %s", exc)
            print(f"error: {exc}", file=sys.stderr)
            return 1
        Path(args.output).write_bytes(result.image.data)
    LOGGER.info("Wrote %s", args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
