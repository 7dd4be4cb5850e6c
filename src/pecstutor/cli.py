"""CLI entry point for PECS Tutor."""

import logging
import sys

import click


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """PECS Tutor — adaptive difficulty engine for picture exchange practice."""
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if ctx.invoked_subcommand is None:
        ctx.invoke(serve)


@main.command()
def serve() -> None:
    """Run the JSON-lines server on stdin/stdout."""
    import asyncio

    from pecstutor.server.__main__ import main as server_main

    asyncio.run(server_main())


@main.command()
def config() -> None:
    """Show the effective adaptive settings."""
    from pecstutor.config.settings import Settings

    settings = Settings.load()
    click.echo(f"Data directory: {settings.data_dir}")
    for name, value in settings.adaptive.model_dump().items():
        click.echo(f"  {name}: {value}")


@main.command()
@click.option("--success-rate", "-p", type=click.FloatRange(0.0, 1.0), default=0.8,
              show_default=True, help="Probability the simulated learner succeeds")
@click.option("--trials", "-n", type=click.IntRange(min=1), default=40, show_default=True)
@click.option("--seed", type=int, default=None, help="Random seed for repeatable runs")
@click.option("--difficulty-penalty", type=click.FloatRange(0.0, 1.0), default=0.0,
              show_default=True,
              help="Drop in success probability per card above the minimum")
def simulate(success_rate: float, trials: int, seed: int | None,
             difficulty_penalty: float) -> None:
    """Drive the engine with a random learner and print the trajectory."""
    import random

    from pecstutor.config.settings import Settings
    from pecstutor.engine.session import AdaptiveDifficulty

    settings = Settings.load().adaptive
    rng = random.Random(seed)
    engine = AdaptiveDifficulty(
        settings=settings,
        on_difficulty_change=lambda d, msg: click.echo(f"    -> {d} cards: {msg}"),
    )

    for i in range(1, trials + 1):
        extra_cards = engine.current_difficulty - settings.min_array_size
        p = max(0.0, success_rate - difficulty_penalty * extra_cards)
        success = rng.random() < p
        response_time_ms = int(rng.gauss(2500 + 400 * extra_cards, 600))
        click.echo(f"  {i:3d}  cards={engine.current_difficulty}  "
                   f"{'ok ' if success else 'miss'}  {max(0, response_time_ms)}ms")
        engine.record_trial(success, response_time_ms)

    perf = engine.get_performance()
    click.echo("")
    click.echo(f"Final difficulty: {perf.current_difficulty} cards")
    click.echo(f"Windowed success rate: {perf.success_rate:.0%}  trend: {perf.trend.value}")
    click.echo(f"Average response time: {perf.avg_response_time_ms:.0f}ms over "
               f"{perf.total_trials} trials")
