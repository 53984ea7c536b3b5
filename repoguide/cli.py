"""CLI entrypoints for repoguide commands."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from .config import ConfigError, load_config
from .errors import AnalysisError
from .logging import configure_logging
from .orchestrator import Orchestrator
from .render import render_markdown
from .stores.jobs import JobStore
from .worker import JobProcessor

DEFAULT_JOBS_FILE = Path(".repoguide") / "jobs.json"


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .repoguide.yml or the directory holding it.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repoguide",
        description="Generate OS-specific setup guides for public GitHub repositories.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a repository and print its setup guide.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_config_option(analyze_parser)
    analyze_parser.add_argument("url", help="GitHub repository URL.")
    analyze_parser.add_argument(
        "--os",
        dest="target_os",
        choices=["windows", "macos", "linux", "all"],
        default="all",
        help="Target operating system for the guide.",
    )
    analyze_parser.add_argument(
        "--model",
        default=None,
        help="Preferred model identifier, tried before the fallback list.",
    )
    analyze_parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the guide as JSON instead of Markdown.",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_config_option(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")
    serve_parser.add_argument(
        "--jobs-file",
        type=Path,
        default=None,
        help="Persist queued jobs to this JSON file.",
    )

    drain_parser = subparsers.add_parser(
        "drain",
        help="Process queued analysis jobs once and exit.",
    )
    _add_verbose_option(drain_parser, suppress_default=True)
    _add_config_option(drain_parser)
    drain_parser.add_argument(
        "--jobs-file",
        type=Path,
        default=DEFAULT_JOBS_FILE,
        help="JSON file holding queued jobs (defaults to .repoguide/jobs.json).",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repoguide commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "analyze":
        orchestrator = Orchestrator(config)
        try:
            result = asyncio.run(
                orchestrator.analyze(
                    args.url,
                    gemini_key=config.secrets.gemini_api_key,
                    github_token=config.secrets.github_token,
                    target_os=args.target_os,
                    model=args.model,
                )
            )
        except AnalysisError as exc:
            parser.exit(1, f"repoguide analyze failed ({exc.kind.value}): {exc.message}\n")
        if args.as_json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            target_os = None if args.target_os == "all" else args.target_os
            print(render_markdown(result, repo_name=_repo_name(args.url), target_os=target_os), end="")
    elif args.command == "serve":
        from .service.app import build_context, run_service

        context = build_context(config, jobs_path=args.jobs_file)
        run_service(host=args.host, port=args.port, context=context)
    elif args.command == "drain":
        jobs = JobStore(args.jobs_file)
        processor = JobProcessor(
            Orchestrator(config),
            jobs,
            default_gemini_key=config.secrets.gemini_api_key,
            default_github_token=config.secrets.github_token,
            batch_size=config.limits.job_batch_size,
        )
        processed = asyncio.run(processor.process_queued())
        print(f"Processed {processed} queued job(s)")
    else:  # pragma: no cover - argparse enforces choices
        parser.error(f"Unknown command: {args.command}")


def _repo_name(url: str) -> str:
    trimmed = url.rstrip("/")
    if trimmed.endswith(".git"):
        trimmed = trimmed[: -len(".git")]
    parts = trimmed.split("/")
    return "/".join(parts[-2:]) if len(parts) >= 2 else trimmed


__all__ = ["main"]
