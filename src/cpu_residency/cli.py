"""CLI commands for cpu-residency."""

import click


@click.group()
@click.version_option(package_name="cpu-residency")
def main() -> None:
    """Per-thread CPU frequency residency snapshots."""
    pass


def _build_collector(config):
    """Set up logging and build a collector, exiting if that fails."""
    from cpu_residency import logging as console
    from cpu_residency.collector import ThreadUsageCollector

    console.configure(config)
    collector = ThreadUsageCollector.create(config)
    if collector is None:
        console.collector_failed(str(config.initial_time_in_state_path))
        raise SystemExit(1)
    console.collector_ready(
        collector.bucket_mapping.num_frequencies, collector.bucket_mapping.num_buckets
    )
    return collector


@main.command()
def frequencies() -> None:
    """Show the lowest frequency of each bucket."""
    from cpu_residency.config import Config
    from cpu_residency.formatting import format_frequency

    collector = _build_collector(Config.load())

    click.echo(f"{'Bucket':>6}  {'Min kHz':>10}  {'':>8}")
    click.echo("-" * 30)
    for i, khz in enumerate(collector.cpu_frequencies_khz):
        click.echo(f"{i:>6}  {khz:>10}  {format_frequency(khz):>8}")


@main.command()
@click.argument("pid", type=int, required=False)
@click.option("--format", "-f", "fmt", type=click.Choice(["table", "json", "csv"]), default="table")
def snapshot(pid: int | None, fmt: str) -> None:
    """Show bucketed residency of every thread of PID (default: this process)."""
    import csv
    import io
    import json
    import os

    from cpu_residency import logging as console
    from cpu_residency.config import Config
    from cpu_residency.formatting import format_frequency, format_millis

    collector = _build_collector(Config.load())

    if pid is None:
        usage = collector.get_current_process_cpu_usage()
    else:
        usage = collector.get_pid_cpu_usage(pid)

    if usage is None:
        console.snapshot_unavailable(pid if pid is not None else os.getpid())
        click.echo("No usage available.")
        return

    console.snapshot_taken(usage.process_id, len(usage.thread_cpu_usages))
    freqs = collector.cpu_frequencies_khz

    if fmt == "json":
        data = usage.to_dict()
        data["cpu_frequencies_khz"] = list(freqs)
        click.echo(json.dumps(data, indent=2))
    elif fmt == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(["thread_id", "thread_name", *freqs])
        for thread in usage.thread_cpu_usages:
            writer.writerow([thread.thread_id, thread.thread_name, *thread.usage_times_millis])
        click.echo(buf.getvalue(), nl=False)
    else:
        click.echo(
            f"Process {usage.process_id} ({usage.process_name}), uid {usage.uid}, "
            f"{len(usage.thread_cpu_usages)} threads"
        )
        header = "".join(f"  {format_frequency(f):>8}" for f in freqs)
        click.echo(f"{'TID':>7}  {'Name':16}{header}")
        click.echo("-" * (25 + 10 * len(freqs)))
        for thread in usage.thread_cpu_usages:
            cells = "".join(f"  {format_millis(t):>8}" for t in thread.usage_times_millis)
            click.echo(f"{thread.thread_id:>7}  {thread.thread_name[:16]:16}{cells}")
        totals = "".join(f"  {format_millis(t):>8}" for t in usage.total_usage_millis())
        click.echo(f"{'':>7}  {'total':16}{totals}")


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from cpu_residency.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[collector]")
    click.echo(f"  proc_path = {cfg.collector.proc_path}")
    click.echo(f"  initial_time_in_state_path = {cfg.collector.initial_time_in_state_path}")
    click.echo(f"  num_buckets = {cfg.collector.num_buckets}")
    click.echo(f"  time_unit_millis = {cfg.collector.time_unit_millis}")
    click.echo()
    click.echo("[names]")
    click.echo(f"  default_process_name = {cfg.names.default_process_name}")
    click.echo(f"  default_thread_name = {cfg.names.default_thread_name}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  log_max_bytes = {cfg.logging.log_max_bytes}")
    click.echo(f"  log_backup_count = {cfg.logging.log_backup_count}")


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from cpu_residency import logging as console
    from cpu_residency.config import Config

    cfg = Config()
    cfg.save()
    console.config_saved(str(cfg.config_path))
    click.echo(f"Config reset to defaults at {cfg.config_path}")
