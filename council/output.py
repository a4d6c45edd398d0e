"""Rich console output plus markdown transcript and JSON debate log on disk."""

import json
import logging
import re
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council.models import ConsensusResult, DebateResult, Iteration, RosterSelection
from council.synthesis import format_trend

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_SCORE_STYLES = ((90, "bold green"), (70, "green"), (50, "yellow"))


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _score_style(score: float) -> str:
    for floor, style in _SCORE_STYLES:
        if score >= floor:
            return style
    return "red"


def print_round_summary(iteration: Iteration, consensus: ConsensusResult) -> None:
    """Print one recorded round: score line, response previews, disagreements."""
    console.print(Rule(f"[bold cyan]Round {iteration.round + 1}[/bold cyan]"))
    console.print(
        Text(
            f"Consensus {iteration.consensus_score:g}% "
            f"({consensus.consensus_level.value}, {consensus.convergence_trend.value}, "
            f"{iteration.convergence:+g}) via {consensus.source}",
            style=_score_style(iteration.consensus_score),
        )
    )
    for name, text in iteration.responses.items():
        console.print(Panel(_preview(text), title=f"[bold]{name}[/bold]", border_style="dim"))
    for disagreement in iteration.disagreements:
        console.print(f"  [yellow]-[/yellow] {disagreement}")


def print_consensus_table(result: DebateResult) -> None:
    table = Table(title="Consensus Evolution")
    table.add_column("Round", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Agents", justify="right")
    table.add_column("Open disagreements", justify="right")
    for it in result.debate_history.history:
        table.add_row(
            str(it.round + 1),
            Text(f"{it.consensus_score:g}%", style=_score_style(it.consensus_score)),
            f"{it.convergence:+g}",
            str(len(it.responses)),
            str(len(it.disagreements)),
        )
    console.print(table)


def print_solution(result: DebateResult) -> None:
    """Print the final solution to the console using Rich markdown."""
    console.print(Rule("[bold green]Council Solution[/bold green]"))
    console.print(
        Text(
            f"Outcome: {result.outcome.value} | "
            f"Rounds: {result.iterations} | "
            f"Final consensus: {result.final_consensus:g}% | "
            f"Duration: {result.total_duration_sec:.1f}s",
            style="dim",
        )
    )
    console.print(Markdown(result.solution))


def save_to_file(result: DebateResult, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the full debate transcript as a markdown file.

    Args:
        result: The completed DebateResult.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the question text.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(result.question.text)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    state = result.debate_history
    lines: list[str] = [
        f"# Iterative Council Debate: {result.question.text[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Rounds:** {result.iterations}",
        f"**Outcome:** {result.outcome.value}",
        f"**Consensus:** {format_trend(state.consensus_trend)}",
        f"**Duration:** {result.total_duration_sec:.1f}s",
        f"**Source:** {result.question.source}",
        f"**Agents:** {', '.join(result.final_responses)}",
        "",
        "---",
        "",
    ]

    for it in state.history:
        round_label = "Initial Proposals" if it.round == 0 else "Critique"
        lines += [f"## Round {it.round + 1}: {round_label} ({it.consensus_score:g}%)", ""]
        for name, text in it.responses.items():
            lines += [f"### {name}", "", text, ""]
        if it.disagreements:
            lines += ["**Disagreements:**", ""]
            lines += [f"- {d}" for d in it.disagreements]
            lines.append("")

    lines += ["## Solution", "", result.solution, ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath


def _iteration_log(it: Iteration) -> dict:
    return {
        "round": it.round,
        "timestamp": it.timestamp,
        "responses": dict(it.responses),
        "consensus_score": it.consensus_score,
        "disagreements": list(it.disagreements),
        "convergence": it.convergence,
    }


def _selection_log(selection: RosterSelection | None) -> dict | None:
    if selection is None:
        return None
    return {
        "agents": [a.name for a in selection.agents],
        "complexity": selection.complexity,
        "reasoning": selection.reasoning,
        "source": selection.source,
    }


def debate_log(result: DebateResult) -> dict:
    """JSON-ready summary of a finished debate."""
    state = result.debate_history
    return {
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "type": "iterative-debate",
        "question": result.question.text,
        "source": result.question.source,
        "outcome": result.outcome.value,
        "iterations": result.iterations,
        "final_consensus": result.final_consensus,
        "consensus_evolution": list(state.consensus_trend),
        "debate_history": [_iteration_log(it) for it in state.history],
        "positions": {
            name: [asdict(p) for p in items] for name, items in state.positions.items()
        },
        "ranking": asdict(result.ranking) if result.ranking else None,
        "selection": _selection_log(result.selection),
        "final_synthesis": result.solution,
    }


def save_debate_log(result: DebateResult, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(result.question.text)}.json"
    filepath.write_text(json.dumps(debate_log(result), indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Debate log saved to: %s", filepath)
    return filepath
