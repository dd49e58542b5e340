"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.backend_client import BackendClient
from ..adapters.mock_backend_client import MOCK_COMPANY_ID, MockBackendClient
from ..config import AppConfig, get_default_config_path
from ..domain.availability import is_available_at, parse_time
from ..domain.exceptions import AgendaError
from ..domain.lifecycle import RequestLifecycleController, build_policies
from ..domain.models import WEEKDAY_LABELS, WEEKDAYS, Actor, Request, RequestKind, format_time
from ..domain.slot_expander import SlotExpander
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="agendaflow",
    help="Horários disponíveis e ciclo de vida de solicitações",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Usar o backend simulado com dados locais.")]
FieldOption = Annotated[Optional[List[str]], typer.Option("--field", "-f", help="Campo do payload no formato chave=valor (repetível).")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Mostrar logs de depuração.")] = False,
):
    """
    Configure logging for all commands.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    """
    Load the YAML config; mock runs fall back to defaults when none exists.

    Mock runs without a company act as the tenant of the bundled sample data.
    """
    config_path = config_file or get_default_config_path()
    if mock and config_file is None and not config_path.exists():
        config = AppConfig()
    else:
        config = AppConfig.load_from_yaml(config_path)

    if mock and config.company_id is None:
        config = config.model_copy(update={"company_id": MOCK_COMPANY_ID})
    return config


def _build_service(config: AppConfig, mock: bool) -> SchedulingService:
    policies = build_policies(config.reviewer_roles)

    if mock:
        console.print("[yellow]⚠  MODO SIMULADO: usando dados de teste[/yellow]\n")
        backend = MockBackendClient(
            data_file=config.mock_data_file,
            tenant=config.tenant(),
            policies=policies,
        )
    else:
        backend = BackendClient(
            base_url=config.api_base_url,
            tenant=config.tenant(),
            timeout=config.http.timeout_seconds,
            max_retries=config.http.max_retries,
            backoff_seconds=config.http.backoff_seconds,
        )

    return SchedulingService(
        backend=backend,
        slot_expander=SlotExpander(timezone=config.timezone),
        controller=RequestLifecycleController(policies),
        horizon_days=config.scheduling.horizon_days,
        granularity_minutes=config.scheduling.granularity_minutes,
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Erro:[/bold red] {error}")
    raise typer.Exit(1)


def _parse_kind(value: str) -> RequestKind:
    try:
        return RequestKind(value.strip().upper())
    except ValueError:
        choices = ", ".join(kind.value for kind in RequestKind)
        raise ValueError(f"Tipo de solicitação inválido: '{value}'. Use um de: {choices}") from None


def _parse_fields(fields: Optional[List[str]]) -> Dict[str, Any]:
    """
    Turn ``key=value`` options into a payload mapping.

    Integer values are converted so durations reach the backend as numbers.
    """
    payload: Dict[str, Any] = {}
    for item in fields or []:
        key, separator, value = item.partition("=")
        if not separator or not key.strip():
            raise ValueError(f"Campo inválido '{item}', use chave=valor")
        value = value.strip()
        payload[key.strip().lower()] = int(value) if value.isdigit() else value
    return payload


def _print_request(request: Request, title: str) -> None:
    lines = [
        f"[bold]ID:[/bold] {request.id}",
        f"[bold]Tipo:[/bold] {request.kind.value}",
        f"[bold]Solicitante:[/bold] {request.requester}",
        f"[bold]Data:[/bold] {request.date.strftime('%d/%m/%Y')}"
        + (f" {format_time(request.time)}" if request.time else ""),
        f"[bold]Status:[/bold] {request.status.value}",
    ]
    if request.resolution_notes:
        lines.append(f"[bold]Observações:[/bold] {request.resolution_notes}")
    console.print(Panel.fit("\n".join(lines), title=title))


@app.command()
def slots(
    config_file: ConfigOption = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Horizonte em dias")] = None,
    granularity: Annotated[Optional[int], typer.Option("--granularity", "-g", help="Intervalo entre horários em minutos")] = None,
    mock: MockOption = False,
):
    """
    Show the bookable slots of the coming days.

    Examples:

        agendaflow slots --mock
        agendaflow slots --days 7 --granularity 60
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        if days is not None:
            service.horizon_days = days
        if granularity is not None:
            service.granularity_minutes = granularity

        available = service.available_slots()

        if not available:
            console.print(
                "[yellow]⚠ Nenhum horário disponível.[/yellow]\n"
                "Verifique a configuração de disponibilidade ou tente um horizonte maior."
            )
            return

        console.print(f"[bold green]✓ {len(available)} horário(s) disponível(is):[/bold green]\n")
        for slot in available:
            console.print(f"  {slot.format_display()}")
        console.print()

    except (AgendaError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def availability(
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the normalized weekly availability.
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        week = service.load_availability()

        table = Table(
            title="Disponibilidade semanal",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Dia", style="bold yellow")
        table.add_column("Ativo")
        table.add_column("Horários", style="dim")

        for index, name in enumerate(WEEKDAYS):
            day = week.for_weekday(name)
            table.add_row(
                WEEKDAY_LABELS[index],
                "Sim" if day.active else "Não",
                ", ".join(str(time_range) for time_range in day.slots) or "-",
            )

        console.print()
        console.print(table)

        on_duty = is_available_at(week, pendulum.now(config.timezone), config.timezone)
        status = "[green]Sim[/green]" if on_duty else "[red]Não[/red]"
        console.print(f"\nEm atendimento agora: {status}\n")

    except (AgendaError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def requests(
    config_file: ConfigOption = None,
    kind: Annotated[Optional[str], typer.Option("--kind", "-k", help="Filtrar por tipo (DAY_OFF, APPOINTMENT, ...)")] = None,
    status: Annotated[Optional[str], typer.Option("--status", "-s", help="Filtrar por status")] = None,
    mock: MockOption = False,
):
    """
    List requests, optionally filtered by kind and status.
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        request_kind = _parse_kind(kind) if kind else None
        if status and request_kind is None:
            raise ValueError("--status requer --kind")

        found = service.list_requests(request_kind, status)

        if not found:
            console.print("[yellow]Nenhuma solicitação encontrada.[/yellow]")
            return

        table = Table(
            title="Solicitações",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("ID", style="bold yellow")
        table.add_column("Tipo")
        table.add_column("Solicitante", style="dim")
        table.add_column("Data")
        table.add_column("Hora")
        table.add_column("Status", style="bold")

        for request in found:
            table.add_row(
                request.id,
                request.kind.value,
                request.requester,
                request.date.strftime("%d/%m/%Y"),
                format_time(request.time) if request.time else "-",
                request.status.value,
            )

        console.print()
        console.print(table)
        console.print()

    except (AgendaError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def submit(
    kind: Annotated[str, typer.Argument(help="Tipo da solicitação")],
    date: Annotated[str, typer.Argument(help="Data (YYYY-MM-DD)")],
    time: Annotated[Optional[str], typer.Option("--time", "-t", help="Horário (HH:MM)")] = None,
    requester: Annotated[str, typer.Option("--requester", "-r", help="Id do solicitante")] = "anonymous",
    fields: FieldOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Submit a new request.

    Examples:

        agendaflow submit APPOINTMENT 2026-11-04 --time 09:30 -f note=Retorno
        agendaflow submit DAY_OFF 2026-11-10 -f reason=Consulta
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)

        created = service.submit_request(
            _parse_kind(kind),
            requester,
            pendulum.from_format(date, "YYYY-MM-DD").date(),
            parse_time(time) if time else None,
            _parse_fields(fields),
        )

        console.print("[green]✓ Solicitação enviada[/green]")
        _print_request(created, "Nova solicitação")

    except (AgendaError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def review(
    request_id: Annotated[str, typer.Argument(help="Id da solicitação")],
    status: Annotated[str, typer.Argument(help="Novo status (ex.: APPROVED, REJECTED, ACORDO)")],
    actor_id: Annotated[str, typer.Option("--actor-id", help="Id do revisor")],
    role: Annotated[str, typer.Option("--role", help="Papel do revisor (MASTER, RH, LIDER)")],
    company: Annotated[Optional[str], typer.Option("--company", help="Empresa do revisor; padrão: company_id da configuração")] = None,
    fields: FieldOption = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Approve, reject or otherwise resolve a request.

    Examples:

        agendaflow review mock-2 APPROVED --actor-id rh-1 --role RH --mock
        agendaflow review mock-1 REJECTED --actor-id m-1 --role MASTER -f admin_notes=Sem agenda
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)

        request = service.get_request(request_id)
        actor = Actor(id=actor_id, role=role, company_id=company or config.company_id)

        updated = service.review(request, status, actor, _parse_fields(fields))

        if updated is request:
            console.print(f"[yellow]Solicitação já está em {request.status.value}, nada a fazer.[/yellow]")
        else:
            console.print("[green]✓ Decisão registrada[/green]")
        _print_request(updated, "Solicitação")

    except (AgendaError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]agendaflow[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
