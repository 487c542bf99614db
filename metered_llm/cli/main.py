"""
CLI interface for metered-llm.

Operator commands: inspect prices, price a token count, and send a probe
request through the metered client.
"""

import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from metered_llm.config.loader import ClientConfig, load_config_or_default
from metered_llm.config.logging_setup import setup_logging
from metered_llm.core.errors import LLMClientError
from metered_llm.core.pricing import calculate_cost
from metered_llm.core.token_counter import TokenUsage
from metered_llm.core.usage import UsageStats
from metered_llm.sdk.openai_client import MeteredOpenAI

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION_HELP = "Path to a YAML client config"


def _load_config(config_path: Optional[str]) -> ClientConfig:
    """Load config or exit with a readable error."""
    try:
        return load_config_or_default(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """metered-llm CLI."""
    if ctx.invoked_subcommand is None:
        console.print("metered-llm - Use --help to see available commands")


@app.command()
def prices(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP)
):
    """Show the price table (USD per 1M tokens)."""
    config = _load_config(config_path)
    table = Table(title="Model prices (USD / 1M tokens)")
    table.add_column("Model")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")

    for model in config.pricing.models:
        pricing = config.pricing.prices[model]
        name = f"{model} (default)" if model == config.pricing.default_model else model
        table.add_row(name, f"${pricing.input_per_million}", f"${pricing.output_per_million}")

    console.print(table)


@app.command()
def cost(
    model: str = typer.Argument(..., help="Model name"),
    input_tokens: int = typer.Argument(..., min=0, help="Input (prompt) tokens"),
    output_tokens: int = typer.Argument(..., min=0, help="Output (completion) tokens"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP)
):
    """Compute the cost of a token count for a model."""
    config = _load_config(config_path)
    usage = TokenUsage(prompt_tokens=input_tokens, completion_tokens=output_tokens)
    amount = calculate_cost(model, usage, config.pricing)

    if model not in config.pricing.prices:
        console.print(
            f"[yellow]Unknown model '{model}', priced as {config.pricing.default_model}[/]"
        )
    console.print(f"Cost: {_format_cost(amount)}")


@app.command()
def probe(
    prompt: str = typer.Argument(..., help="User message to send"),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="Optional system message"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Override the default model"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Override max output tokens"),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", help="Override temperature"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log client activity")
):
    """
    Send one request through the metered client.

    Prints the reply, the call's usage and the client's usage totals.
    Requires OPENAI_API_KEY.
    """
    setup_logging(logging.INFO if verbose else logging.WARNING)
    config = _load_config(config_path)

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    overrides = {"use_cache": not no_cache}
    if model:
        overrides["model"] = model
    if max_tokens is not None:
        overrides["max_tokens"] = max_tokens
    if temperature is not None:
        overrides["temperature"] = temperature

    try:
        client = MeteredOpenAI(config)
        result = client.chat(messages, **overrides)
    except LLMClientError as e:
        console.print(f"[red]Error ({e.kind.value}):[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    except ValueError as e:
        console.print(f"[red]Invalid request:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print("\n[bold]Reply[/bold]")
    console.print("-" * 40)
    console.print(result.message.content or "")
    if result.message.function_call:
        console.print(f"[dim]function_call: {result.message.function_call}[/]")
    console.print("-" * 40)
    console.print(
        f"Tokens: {result.usage.input_tokens} in + {result.usage.output_tokens} out"
        f" | Cost: {_format_cost(result.usage.cost_usd)}"
    )

    _display_stats(client.stats())
    sys.exit(EXIT_CODE_PASS)


def _format_cost(amount: float) -> str:
    """Format a small USD amount with enough precision for per-call costs."""
    return f"${amount:,.6f}"


def _display_stats(stats: UsageStats):
    """Display usage totals as a table."""
    table = Table(title="Usage")
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Total requests", str(stats.total_requests))
    table.add_row("Successful", str(stats.successful_requests))
    table.add_row("Failed", str(stats.failed_requests))
    table.add_row("Input tokens", str(stats.total_input_tokens))
    table.add_row("Output tokens", str(stats.total_output_tokens))
    table.add_row("Total cost", _format_cost(stats.total_cost_usd))
    table.add_row("Success rate", f"{stats.success_rate:.2f}%")
    table.add_row("Cache hits", f"{stats.cache_hits} ({stats.cache_hit_rate:.2f}%)")
    table.add_row("Avg cost / request", _format_cost(stats.average_cost_per_request))

    console.print(table)


if __name__ == "__main__":
    app()
