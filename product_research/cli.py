#!/usr/bin/env python3
"""
CLI for the product research pipeline.

Usage:
    # Queue a job
    python -m product_research.cli create --pdf-url URL --vendor-url URL --instructions "pages 4-6"

    # Run one job, or the oldest queued job
    python -m product_research.cli run <job_id>
    python -m product_research.cli drain

    # Poll for queued jobs
    python -m product_research.cli worker

    # Show a job's products and costs
    python -m product_research.cli show <job_id>

    # List recent jobs
    python -m product_research.cli list --limit 10

    # Start the API server
    python -m product_research.cli serve
"""

import argparse
import sys

from rich.console import Console
from rich.table import Table

from .config import config
from .errors import ProcessingError
from .models import Job, JobInputs, JobOptions
from .processor import build_processor, estimate_processing_time, queue_job
from .storage import get_job_store

console = Console()


def print_job(job: Job):
    """Pretty print a job with its products and costs."""
    status_colors = {"completed": "green", "failed": "red", "processing": "yellow", "queued": "cyan"}
    color = status_colors.get(job.status.value, "white")
    console.print(f"\n[bold]Job {job.id}[/bold]  [{color}]{job.status.value}[/{color}]  "
                  f"{job.progress}%  {job.message}")

    products = (job.results or {}).get("products", [])
    if products:
        table = Table(title=f"Products ({len(products)})")
        table.add_column("Name", style="cyan")
        table.add_column("Category")
        table.add_column("Price", justify="right")
        table.add_column("Variants", justify="right")
        table.add_column("Images", justify="right")
        table.add_column("Confidence", justify="right")

        for product in products:
            confidence = product.get("confidence", 0)
            conf_style = "red" if confidence < 0.8 else "green"
            table.add_row(
                product.get("name", ""),
                product.get("category", ""),
                f"${product.get('price_cents', 0) / 100:.2f}",
                str(len(product.get("variants", []))),
                str(len(product.get("images", []))),
                f"[{conf_style}]{confidence:.2f}[/{conf_style}]",
            )
        console.print(table)

    costs = Table(title="Cost")
    costs.add_column("Stage")
    costs.add_column("USD", justify="right")
    for stage, amount in job.cost_breakdown.to_dict().items():
        costs.add_row(stage, f"{amount:.6f}")
    costs.add_row("[bold]total[/bold]", f"[bold]{job.total_cost:.6f}[/bold]")
    console.print(costs)

    if job.errors:
        console.print("\n[yellow]Errors:[/yellow]")
        for error in job.errors:
            console.print(f"  - {error}")


def cmd_create(args):
    """Queue a job."""
    inputs = JobInputs(
        pdf_url=args.pdf_url,
        vendor_url=args.vendor_url,
        instructions=args.instructions,
        options=JobOptions(
            category=args.category,
            generate_descriptions=not args.no_descriptions,
            fetch_images=not args.no_images,
        ),
    )
    job = queue_job(get_job_store(), inputs)
    console.print(f"Queued job [bold]{job.id}[/bold] "
                  f"(estimated {estimate_processing_time(inputs)}s)")


def cmd_run(args):
    """Process one job."""
    processor = build_processor()
    job = processor.process_job(args.job_id)
    if job is None:
        console.print(f"Job {args.job_id} is not queued, nothing to do")
        job = processor.job_store.get(args.job_id)
    print_job(job)


def cmd_drain(args):
    """Process the oldest queued job."""
    processor = build_processor()
    result = processor.process_queued_jobs()
    if not result.get("processed"):
        console.print("No queued jobs found")
        return
    print_job(processor.job_store.get(result["job_id"]))


def cmd_worker(args):
    """Poll for queued jobs."""
    from .worker import run_worker
    run_worker(poll_interval=args.interval)


def cmd_show(args):
    """Show a job."""
    job = get_job_store().get(args.job_id)
    if job is None:
        console.print(f"[red]Job not found: {args.job_id}[/red]")
        return 1
    print_job(job)


def cmd_list(args):
    """List recent jobs, newest first."""
    jobs = get_job_store().list_jobs(limit=args.limit)
    if not jobs:
        console.print("No jobs found")
        return

    table = Table(title=f"Jobs ({len(jobs)})")
    table.add_column("ID", style="cyan")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Created")
    table.add_column("Cost", justify="right")
    table.add_column("Message")
    for job in jobs:
        table.add_row(
            job.id,
            job.status.value,
            f"{job.progress}%",
            job.created_at.strftime("%Y-%m-%d %H:%M") if job.created_at else "",
            f"${job.total_cost:.4f}",
            job.message or "",
        )
    console.print(table)


def cmd_serve(args):
    """Start the API server."""
    from .app import create_app
    create_app().run(host=args.host, port=args.port, debug=config.DEBUG)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Product research pipeline")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Queue a new job")
    create.add_argument("--pdf-url")
    create.add_argument("--vendor-url")
    create.add_argument("--instructions")
    create.add_argument("--category")
    create.add_argument("--no-descriptions", action="store_true")
    create.add_argument("--no-images", action="store_true")
    create.set_defaults(func=cmd_create)

    run = subparsers.add_parser("run", help="Process a job")
    run.add_argument("job_id")
    run.set_defaults(func=cmd_run)

    drain = subparsers.add_parser("drain", help="Process the oldest queued job")
    drain.set_defaults(func=cmd_drain)

    worker = subparsers.add_parser("worker", help="Poll for queued jobs")
    worker.add_argument("--interval", type=float, default=None)
    worker.set_defaults(func=cmd_worker)

    show = subparsers.add_parser("show", help="Show a job")
    show.add_argument("job_id")
    show.set_defaults(func=cmd_show)

    list_jobs = subparsers.add_parser("list", help="List recent jobs")
    list_jobs.add_argument("--limit", type=int, default=20)
    list_jobs.set_defaults(func=cmd_list)

    serve = subparsers.add_parser("serve", help="Start the API server")
    serve.add_argument("--host", default=config.HOST)
    serve.add_argument("--port", type=int, default=config.PORT)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args) or 0
    except ProcessingError as e:
        console.print(f"[red]❌ {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
