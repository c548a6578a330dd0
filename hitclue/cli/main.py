"""Command-line interface for hitclue.

Provides CLI commands for clustering hit collections and inspecting the
configuration.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from hitclue import __version__


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("hitclue")


@click.group()
@click.version_option(version=__version__, prog_name="hitclue")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """hitclue: density-based clustering of layered detector hits.

    Examples:

        # Cluster a hit collection with default parameters
        hitclue cluster --input hits.csv --out results/

        # Override the critical distance and write layer plots
        hitclue cluster --input hits.csv --out results/ --dc 1.3 --plot

        # Print the default configuration as YAML
        hitclue show-config > clue.yaml
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)


@cli.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Hit table (CSV with x, y, layer, weight[, hit_id, event])")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Clustering configuration file (YAML)")
@click.option("--dc", type=float, help="Critical distance")
@click.option("--kappa", type=float, help="Critical-density multiplier")
@click.option("--ecut", type=float, help="Noise-cut multiplier")
@click.option("--outlier-delta-factor", type=float, help="Outlier distance in units of dc")
@click.option("--n-jobs", type=int, help="Threads for the per-layer passes")
@click.option("--with-hit-id", is_flag=True, help="Add the input hit id to the result table")
@click.option("--plot", is_flag=True, help="Write per-layer cluster plots")
@click.pass_context
def cluster(
    ctx: click.Context,
    input_path: str,
    output_path: str,
    config: Optional[str],
    dc: Optional[float],
    kappa: Optional[float],
    ecut: Optional[float],
    outlier_delta_factor: Optional[float],
    n_jobs: Optional[int],
    with_hit_id: bool,
    plot: bool,
) -> None:
    """Run CLUE clustering on every event of a hit table.

    Writes clusters.csv (one row per retained hit) and summary.json
    (per-event statistics) to the output directory.
    """
    logger = ctx.obj["logger"]

    # Import here to avoid slow startup
    import pandas as pd

    from hitclue.core.clustering import ClueRunConfig, ClusteringEngine
    from hitclue.io import ensure_output_dir, get_logger, load_hits, log_yaml, split_events, write_dataframe

    out_dir = ensure_output_dir(output_path)

    cfg = ClueRunConfig.from_yaml(Path(config)) if config else ClueRunConfig()
    overrides = {
        "dc": dc,
        "kappa": kappa,
        "ecut": ecut,
        "outlier_delta_factor": outlier_delta_factor,
        "n_jobs": n_jobs,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(cfg.clue, name, value)

    run_logger, log_path = get_logger("hitclue", out_dir / "hitclue.log")
    log_yaml(log_path, cfg.to_dict(), logger=run_logger)
    logger.info(f"Logging to {log_path}")

    try:
        engine = ClusteringEngine(cfg)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    hits = load_hits(input_path)
    frames = []
    summaries = {}
    for event_id, event_hits in split_events(hits):
        try:
            engine.set_points_from_frame(event_hits)
        except ValueError as e:
            click.echo(f"Error in event {event_id}: {e}", err=True)
            sys.exit(1)
        result = engine.make_clusters()
        frame = result.to_frame(with_hit_id=with_hit_id)
        frame.insert(0, "event", event_id)
        frames.append(frame)
        summaries[str(event_id)] = result.summary_dict()

        if plot:
            from hitclue.viz import save_layer_plots

            save_layer_plots(result.points, out_dir / "plots", prefix=f"event{event_id:04d}_layer")

        engine.clear_points()

    results = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()
    output_file = write_dataframe(results, out_dir / "clusters.csv")
    with open(out_dir / "summary.json", "w", encoding="utf-8") as f:
        json.dump({"config": cfg.to_dict(), "events": summaries}, f, indent=2)

    n_clusters = sum(s["n_clusters"] for s in summaries.values())
    click.echo(f"Clustering complete: {len(summaries)} events, {n_clusters} clusters")
    click.echo(f"Output saved to: {output_file}")


@cli.command("show-config")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Configuration file to load before printing")
def show_config(config: Optional[str]) -> None:
    """Print the clustering configuration as YAML."""
    from hitclue.core.clustering import ClueRunConfig

    cfg = ClueRunConfig.from_yaml(Path(config)) if config else ClueRunConfig.default()
    click.echo(cfg.to_yaml(), nl=False)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
