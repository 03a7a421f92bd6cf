"""Alert condition commands."""

from typing import List

import typer

from dashstore.alerting import new_alert_evaluator
from dashstore.alerting.evaluator import DEFAULT_TYPES, RANGED_TYPES
from dashstore.errors import ValidationError

alert_app = typer.Typer(help="Alert condition tools.", no_args_is_help=True)


@alert_app.command("types")
def alert_types() -> None:
    """List the supported evaluator types and the params each expects."""
    for name in DEFAULT_TYPES:
        typer.echo(f"  {name}\t--param THRESHOLD")
    for name in RANGED_TYPES:
        typer.echo(f"  {name}\t--param LOWER --param UPPER")


@alert_app.command("eval")
def alert_eval(
    type: str = typer.Option(..., "--type", help="gt | lt | within_range | outside_range"),
    param: List[float] = typer.Option(..., "--param", help="Threshold parameter (repeatable)."),
    value: float = typer.Option(..., "--value", help="Reduced series value to test."),
) -> None:
    """Check whether a reduced value breaches a threshold condition."""
    try:
        evaluator = new_alert_evaluator({"type": type, "params": list(param)})
    except ValidationError as e:
        typer.echo(f"❌ {e.reason}")
        raise typer.Exit(code=1)

    if evaluator.eval(None, value):
        typer.echo(f"🔥 firing: {value} breaches {type} {list(param)}")
    else:
        typer.echo(f"✅ ok: {value} does not breach {type} {list(param)}")
