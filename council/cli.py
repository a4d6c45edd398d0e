"""Click CLI: config loading, agent roster selection, debate run and output."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from council.consensus import ConsensusAnalyzer
from council.debate import DebateSettings, DebateViabilityError, run_debate
from council.healthcheck import run_health_checks
from council.models import Agent, ConsensusResult, Iteration, Question
from council.output import (
    print_consensus_table,
    print_round_summary,
    print_solution,
    save_debate_log,
    save_to_file,
)
from council.providers.anthropic import AnthropicProvider
from council.providers.base import AIProvider
from council.providers.command import CommandProvider
from council.providers.gemini import GeminiProvider
from council.providers.openai_compatible import OpenAICompatibleProvider
from council.ranking import ResponseRanker
from council.selection import RosterSelector

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAICompatibleProvider,
    "gemini": GeminiProvider,
    "cli": CommandProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by model name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Provider '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _select_agents(
    config: AppConfig,
    agents_arg: str | None,
    providers: dict[str, AIProvider],
) -> list[Agent]:
    """Resolve the roster. --agents overrides the configured default roster."""
    names = [a.strip() for a in agents_arg.split(",") if a.strip()] if agents_arg else config.defaults.agents
    roster: list[Agent] = []
    for name in names:
        agent_cfg = config.agents.get(name)
        if agent_cfg is None:
            logger.warning("Unknown agent '%s', skipping", name)
            continue
        provider = providers.get(agent_cfg.model)
        if provider is None:
            logger.warning("Agent '%s' skipped: provider '%s' unavailable", name, agent_cfg.model)
            continue
        roster.append(Agent(name=name, role=agent_cfg.role, provider=provider))
    return roster


def _pick_judge(providers: dict[str, AIProvider], preferred: str) -> AIProvider | None:
    """Preferred provider if available, else any; None means heuristics only."""
    if preferred in providers:
        return providers[preferred]
    if providers:
        fallback = next(iter(providers.values()))
        logger.warning("'%s' unavailable, using '%s' instead", preferred, fallback.name())
        return fallback
    return None


def _build_selector(
    config: AppConfig,
    judge: AIProvider | None,
    agents_arg: str | None,
    no_selection: bool,
) -> RosterSelector | None:
    """Roster selection runs unless disabled or the user named the agents."""
    if no_selection or agents_arg or not config.defaults.intelligent_selection or judge is None:
        return None
    return RosterSelector(judge, timeout_sec=config.defaults.selection_timeout_sec)


def _check_and_filter_providers(providers: dict[str, AIProvider]) -> dict[str, AIProvider]:
    """Run health checks, print results, and ask what to do on failures.

    Exits if the user declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results = asyncio.run(run_health_checks(providers))

    failed = [name for name in sorted(results) if not results[name][0]]
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")

    if not failed:
        console.print()
        return providers

    working = {n: p for n, p in providers.items() if n not in failed}
    if not working:
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed)} provider(s) failed:[/yellow] {', '.join(failed)}")
    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)
    console.print()
    return working


async def _run(
    question: Question,
    config: AppConfig,
    agents: list[Agent],
    coordinator: AIProvider | None,
    evaluator: AIProvider | None,
    settings: DebateSettings,
    output_dir: Path,
    selector: RosterSelector | None = None,
) -> Path:
    """Run one debate, print it, and return the saved transcript path."""
    analyzer = ConsensusAnalyzer(
        coordinator,
        coordinator_timeout_sec=config.defaults.coordinator_timeout_sec,
        consensus_threshold=settings.consensus_threshold,
    )
    ranker = ResponseRanker(evaluator, timeout_sec=config.defaults.evaluator_timeout_sec)
    recorded: list[tuple[Iteration, ConsensusResult]] = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Round 1: initial proposals...", total=None)

        def on_round_complete(iteration: Iteration, consensus: ConsensusResult) -> None:
            recorded.append((iteration, consensus))
            progress.print(
                f"[green]OK[/green] Round {iteration.round + 1}: "
                f"{len(iteration.responses)} responses, consensus {iteration.consensus_score:g}%"
            )
            progress.update(task, description=f"Round {iteration.round + 2}: critique...")

        result = await run_debate(
            question=question,
            agents=agents,
            analyzer=analyzer,
            ranker=ranker,
            prompts=config.prompts,
            settings=settings,
            on_round_complete=on_round_complete,
            selector=selector,
        )

    for iteration, consensus in recorded:
        print_round_summary(iteration, consensus)
    print_consensus_table(result)
    print_solution(result)

    saved_path = save_to_file(result, output_dir)
    save_debate_log(result, output_dir)
    console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return saved_path


@click.command()
@click.argument("question", required=False)
@click.option("--file", "question_file", type=click.Path(exists=True), help="Read question from a text/markdown file")
@click.option("--agents", default=None, help="Comma-separated agent roster (default: from config)")
@click.option("--max-iterations", default=None, type=click.IntRange(min=1),
              help="Total debate rounds allowed, round 1 included (default: from config)")
@click.option("--threshold", default=None, type=click.IntRange(0, 100),
              help="Consensus score that ends the debate (default: from config)")
@click.option("--coordinator", default=None, help="Provider that judges consensus (default: from config)")
@click.option("--evaluator", default=None, help="Provider that ranks final answers (default: from config)")
@click.option("--timeout", "timeout_sec", default=None, type=click.IntRange(min=1),
              help="Overall debate deadline in seconds (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--no-selection", is_flag=True, default=False,
              help="Let every roster agent debate instead of a coordinator-picked subset")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    question: str | None,
    question_file: str | None,
    agents: str | None,
    max_iterations: int | None,
    threshold: int | None,
    coordinator: str | None,
    evaluator: str | None,
    timeout_sec: int | None,
    output_path: str | None,
    no_selection: bool,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Iterative Council -- multi-agent debate until consensus.

    \b
    Examples:
      iterative-council "What is the capital of Lithuania?"
      iterative-council "Microservices or monolith for a 3-person startup?" --max-iterations 4
      iterative-council --file question.md --agents architect,tester,integrator
      iterative-council "REST or GraphQL?" --threshold 85 --coordinator gemini
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if question_file:
        question_obj = Question(text=Path(question_file).read_text(encoding="utf-8").strip(), source=question_file)
    elif question:
        question_obj = Question(text=question, source="cli")
    else:
        console.print("[bold red]Error:[/bold red] Provide a QUESTION argument or --file.")
        sys.exit(1)

    providers = _build_all_providers(config)
    if not providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        providers = _check_and_filter_providers(providers)

    roster = _select_agents(config, agents, providers)
    if len(roster) < 2:
        console.print(
            f"[bold red]Error:[/bold red] Need at least 2 agents, got {len(roster)}. "
            "Check API keys in .env or adjust --agents."
        )
        sys.exit(1)

    settings = DebateSettings(
        max_iterations=max_iterations if max_iterations is not None else config.defaults.max_iterations,
        consensus_threshold=threshold if threshold is not None else config.defaults.consensus_threshold,
        agent_timeout_sec=config.defaults.agent_timeout_sec,
        debate_timeout_sec=timeout_sec if timeout_sec is not None else config.defaults.debate_timeout_sec,
    )
    judge = _pick_judge(providers, coordinator or config.defaults.coordinator)
    ranker_provider = _pick_judge(providers, evaluator or config.defaults.evaluator)
    selector = _build_selector(config, judge, agents, no_selection)

    text = question_obj.text
    console.print(
        f"\n[bold cyan]Iterative Council[/bold cyan] -- {len(roster)} agents, "
        f"up to {settings.max_iterations} rounds, threshold {settings.consensus_threshold:g}%"
    )
    label = "Candidate agents" if selector else "Agents"
    console.print(f"{label}: " + ", ".join(f"{a.name} ({a.role})" for a in roster))
    console.print(f"Coordinator: {judge.name() if judge else 'keyword heuristic'}")
    console.print(f"Question: [italic]{text[:80]}{'...' if len(text) > 80 else ''}[/italic]\n")

    try:
        asyncio.run(
            _run(
                question=question_obj,
                config=config,
                agents=roster,
                coordinator=judge,
                evaluator=ranker_provider,
                settings=settings,
                output_dir=Path(output_path) if output_path else config.defaults.output_dir,
                selector=selector,
            )
        )
    except DebateViabilityError as exc:
        console.print(f"[bold red]Debate failed:[/bold red] {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
