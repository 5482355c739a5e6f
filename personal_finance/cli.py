"""
Personal Finance - Programma a riga di comando

Esporta le transazioni del registro come CSV e importa transazioni da CSV.

Usage:
    personal-finance init-db
    personal-finance seed-demo
    personal-finance conti
    personal-finance export-csv --from 2024-01-01 --to 2024-01-31 --conto "Conto Corrente"
    personal-finance export-csv --field Data --field Importo --date-format yyyy-MM-dd -y
    personal-finance import-csv estratto.csv --account Personale --date-format dd/MM/yyyy
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from personal_finance.core.config import settings
from personal_finance.core.currency import format_currency
from personal_finance.core.logging import get_logger, setup_logging
from personal_finance.core.time import parse_cli_date
from personal_finance.csv_import.errors import CSVImportError, ImportMappingError
from personal_finance.csv_import.options import ImportOptions
from personal_finance.csv_import.parser import (
    ColumnMapping,
    CSVParseResult,
    detect_column_mapping,
    extract_unique_account_values,
    generate_preview,
    validate_mapping,
)
from personal_finance.csv_import.service import ImportService
from personal_finance.db import repository
from personal_finance.db.demo import seed_demo_data
from personal_finance.db.session import get_engine, init_database, make_session_factory, session_scope
from personal_finance.export.csv_exporter import TransactionCSVExporter
from personal_finance.export.errors import ExportError, InvalidExportOptions
from personal_finance.export.options import CSVDateFormat, CSVField, CSVFieldSection, ExportOptions, load_export_preset
from personal_finance.export.service import ExportService

app = typer.Typer(help="Personal Finance - esportazione e importazione CSV del registro")
console = Console()
logger = get_logger(__name__)


@app.callback()
def configure() -> None:
    """Inizializza il logging prima di ogni comando."""
    setup_logging()


def open_store(db_url: Optional[str] = None):
    """
    Apre il database e crea le tabelle mancanti.

    Args:
        db_url: SQLAlchemy Database URL (predefinito: DATABASE_URL)

    Returns:
        Session factory
    """
    engine = get_engine(db_url)
    init_database(engine)
    return make_session_factory(engine)


def parse_date_option(value: Optional[str], option_name: str):
    """
    Interpreta una data YYYY-MM-DD passata da riga di comando.

    Raises:
        typer.BadParameter: Se la data non è valida
    """
    if value is None:
        return None
    try:
        return parse_cli_date(value)
    except ValueError:
        raise typer.BadParameter(f"Data non valida: {value} (formato YYYY-MM-DD)", param_hint=option_name)


def build_options(
    preset: Optional[Path],
    fields: Optional[list[str]],
    date_format: Optional[str],
    no_header: bool,
    from_date: Optional[str],
    to_date: Optional[str],
) -> ExportOptions:
    """
    Compone le opzioni di esportazione: preset YAML, poi le opzioni CLI.

    Raises:
        InvalidExportOptions: Campo o formato data sconosciuto
    """
    data: dict[str, Any] = {}
    if preset is not None:
        data.update(load_export_preset(preset))

    if fields:
        data["include_fields"] = fields
    if date_format:
        data["date_format"] = date_format
    if no_header:
        data["include_header"] = False

    start = parse_date_option(from_date, "--from")
    end = parse_date_option(to_date, "--to")
    if start is not None:
        data["date_from"] = start
    if end is not None:
        data["date_to"] = end

    try:
        return ExportOptions.from_preset(data)
    except ValidationError as e:
        messages = "; ".join(error["msg"] for error in e.errors())
        raise InvalidExportOptions(messages) from e


@app.command("init-db")
def init_db() -> None:
    """Crea le tabelle del database."""
    open_store()
    console.print("[green]✓[/green] Database pronto")


@app.command("seed-demo")
def seed_demo(
    months: int = typer.Option(3, help="Mesi di transazioni da generare"),
    seed: Optional[int] = typer.Option(None, help="Seed per dati riproducibili"),
) -> None:
    """Crea un libro \"Demo\" con conti, categorie e transazioni di esempio."""
    try:
        factory = open_store()
        with session_scope(factory) as session:
            account = seed_demo_data(session, months=months, seed=seed)
            conti_count = len(account.conti)
    except SQLAlchemyError as e:
        console.print(f"[red]ERRORE: {e}[/red]")
        logger.exception("Demo seeding failed")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Libro Demo creato con {conti_count} conti e {months} mesi di transazioni")


@app.command("conti")
def list_conti() -> None:
    """Mostra i conti con tipo e saldo."""
    try:
        factory = open_store()
        with factory() as session:
            conti = repository.list_conti(session)

            table = Table(title="Conti")
            table.add_column("Nome", style="cyan")
            table.add_column("Tipo")
            table.add_column("Libro")
            table.add_column("Saldo", style="green", justify="right")
            table.add_column("ID", style="dim")

            for conto in conti:
                currency = conto.account.currency if conto.account else settings.base_currency
                table.add_row(
                    conto.name,
                    conto.type.display_name,
                    conto.account.name if conto.account else "",
                    format_currency(conto.balance, currency),
                    str(conto.id),
                )
    except SQLAlchemyError as e:
        console.print(f"[red]ERRORE: {e}[/red]")
        raise typer.Exit(1)

    if not conti:
        console.print("[yellow]Nessun conto disponibile[/yellow]")
        return

    console.print(table)


@app.command("fields")
def list_fields() -> None:
    """Elenca i campi esportabili, raggruppati per sezione."""
    table = Table(title="Campi CSV")
    table.add_column("Sezione", style="cyan")
    table.add_column("Campo")
    table.add_column("Nome", style="dim")
    table.add_column("Obbligatorio")

    for section in CSVFieldSection:
        for field in section.fields:
            table.add_row(section.value, field.label, field.name.lower(), "sì" if field.is_required else "")

    console.print(table)


@app.command("date-formats")
def list_date_formats() -> None:
    """Elenca i formati data disponibili con un esempio."""
    table = Table(title="Formati data")
    table.add_column("Nome", style="cyan")
    table.add_column("Formato")
    table.add_column("Esempio", style="green")

    for date_format in CSVDateFormat:
        table.add_row(date_format.name.lower(), date_format.pattern, date_format.example())

    console.print(table)


@app.command("export-csv")
def export_csv(
    output_dir: Optional[Path] = typer.Option(
        None,
        help="Directory di destinazione (predefinita: EXPORT_DIR o directory temporanea)"
    ),
    from_date: Optional[str] = typer.Option(
        None,
        "--from",
        help="Data inizio (YYYY-MM-DD)"
    ),
    to_date: Optional[str] = typer.Option(
        None,
        "--to",
        help="Data fine (YYYY-MM-DD)"
    ),
    conti: Optional[list[str]] = typer.Option(
        None,
        "--conto",
        help="Conto da esportare (nome o ID, ripetibile; nessuno = tutti)"
    ),
    fields: Optional[list[str]] = typer.Option(
        None,
        "--field",
        help="Campo da includere (etichetta o nome, ripetibile; nessuno = tutti)"
    ),
    date_format: Optional[str] = typer.Option(
        None,
        "--date-format",
        help="Formato data (es. yyyy-MM-dd oppure iso8601_date_only)"
    ),
    no_header: bool = typer.Option(
        False,
        "--no-header",
        help="Non scrivere la riga di intestazione"
    ),
    account_name: Optional[str] = typer.Option(
        None,
        "--account",
        help="Nome del libro usato nel nome del file"
    ),
    preset: Optional[Path] = typer.Option(
        None,
        "--preset",
        help="File YAML con le opzioni di esportazione"
    ),
    skip_confirmation: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Salta la conferma"
    ),
) -> None:
    """
    Esporta le transazioni come file CSV.

    Le transazioni sono filtrate per periodo e per conto e ordinate dalla
    più recente. Il file viene scritto in UTF-8 con separatore virgola.
    """
    console.print()
    console.print(Panel.fit(
        "[bold green]Esporta CSV[/bold green]",
        border_style="green"
    ))
    console.print()

    try:
        options = build_options(preset, fields, date_format, no_header, from_date, to_date)

        factory = open_store()

        # Resolve conti and the account used for the file name
        with factory() as session:
            if conti:
                found, missing = repository.find_conti(session, conti)
                if missing:
                    raise InvalidExportOptions(f"Conto non trovato: {', '.join(missing)}")
                options.conto_ids = {conto.id for conto in found}

            if account_name is None:
                account = repository.first_account(session)
                account_name = account.name if account else None

        service = ExportService(factory, TransactionCSVExporter(output_dir))

        period_from = options.date_from.date() if options.date_from else "inizio"
        period_to = options.date_to.date() if options.date_to else "oggi"
        console.print(f"[dim]Periodo: {period_from} - {period_to}[/dim]")

        transactions = service.select_transactions(options)

        summary = Table()
        summary.add_column("Opzione", style="cyan")
        summary.add_column("Valore", style="green")
        summary.add_row("Conti", str(len(options.conto_ids)) if options.conto_ids else "tutti")
        summary.add_row("Campi", ", ".join(field.label for field in options.ordered_fields))
        summary.add_row("Formato data", options.date_format.pattern)
        summary.add_row("Intestazione", "sì" if options.include_header else "no")
        summary.add_row("Transazioni da esportare", str(len(transactions)))
        console.print(summary)
        console.print()

        if not transactions:
            console.print("[yellow]Nessuna transazione corrisponde ai criteri selezionati[/yellow]")
            raise typer.Exit(0)

        console.print("[bold]Anteprima (prime 5 transazioni):[/bold]")
        preview_table = Table()
        preview_table.add_column("Data")
        preview_table.add_column("Tipo")
        preview_table.add_column("Importo", justify="right")
        preview_table.add_column("Conto")
        preview_table.add_column("Descrizione")

        for transaction in transactions[:5]:
            preview_table.add_row(
                transaction.date.strftime("%d/%m/%Y"),
                transaction.type.display_name if transaction.type else "",
                format_currency(transaction.signed_amount, transaction.currency),
                transaction.from_conto_name or transaction.to_conto_name or "",
                transaction.description or "",
            )

        console.print(preview_table)
        console.print()

        if not skip_confirmation:
            if not typer.confirm("Esportare adesso il file CSV?"):
                console.print("[yellow]Esportazione annullata[/yellow]")
                raise typer.Exit(0)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("Esportazione in corso...", total=None)
            result = service.export(options, account_name=account_name, timestamp=datetime.now())
            progress.update(task, completed=100, total=100)

        console.print(f"[green]✓[/green] {result.row_count} transazioni esportate")
        console.print(f"[bold]File:[/bold] [cyan]{result.path.absolute()}[/cyan]")
        console.print()

    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Esportazione annullata[/yellow]")
        raise typer.Exit(0)

    except (ExportError, FileNotFoundError) as e:
        console.print()
        console.print(f"[red]ERRORE: {e}[/red]")
        logger.error(f"CSV export failed: {e}")
        raise typer.Exit(1)


def apply_column_overrides(mapping: ColumnMapping, result: CSVParseResult, overrides: list[str]) -> ColumnMapping:
    """
    Applica le associazioni ``Campo=Colonna`` passate con ``--map``.

    La colonna è un'intestazione oppure un numero a partire da 1.

    Raises:
        ImportMappingError: Campo o colonna sconosciuti
    """
    mapping = dict(mapping)
    for item in overrides:
        field_text, separator, column_text = item.partition("=")
        if not separator:
            raise ImportMappingError(f"Associazione non valida: {item} (formato Campo=Colonna)")

        try:
            field = CSVField.parse(field_text)
        except InvalidExportOptions as e:
            raise ImportMappingError(str(e)) from e

        column_text = column_text.strip()
        if column_text.isdigit():
            column = int(column_text) - 1
            if not 0 <= column < result.column_count:
                column = None
        else:
            column = result.column_index(column_text)
        if column is None:
            raise ImportMappingError(f"Colonna non trovata: {column_text}")

        mapping = {f: c for f, c in mapping.items() if c != column}
        mapping[field] = column

    return mapping


@app.command("import-csv")
def import_csv(
    file: Path = typer.Argument(..., help="File CSV da importare"),
    account_name: Optional[str] = typer.Option(
        None,
        "--account",
        help="Libro in cui importare (predefinito: il primo)"
    ),
    conto: Optional[str] = typer.Option(
        None,
        "--conto",
        help="Conto per tutte le transazioni (nome o ID; predefinito: dalla colonna conto)"
    ),
    date_format: str = typer.Option(
        CSVDateFormat.EU_SLASH_DATE_ONLY.value,
        "--date-format",
        help="Formato data provato per primo (es. dd/MM/yyyy oppure iso8601)"
    ),
    delimiter: str = typer.Option(",", "--delimiter", help="Separatore di campo"),
    no_header: bool = typer.Option(False, "--no-header", help="Il file non ha riga di intestazione"),
    encoding: str = typer.Option("utf-8", "--encoding", help="Codifica del file"),
    overrides: Optional[list[str]] = typer.Option(
        None,
        "--map",
        help="Associa un campo a una colonna, es. Importo=Amount oppure Data=1 (ripetibile)"
    ),
    skip_zero: bool = typer.Option(False, "--skip-zero", help="Ignora le righe con importo zero"),
    allow_duplicates: bool = typer.Option(False, "--allow-duplicates", help="Importa anche i duplicati"),
    no_new_categories: bool = typer.Option(
        False,
        "--no-new-categories",
        help="Non creare le categorie mancanti"
    ),
    filter_column: Optional[str] = typer.Option(
        None,
        "--filter-column",
        help="Colonna del conto nei file con più conti"
    ),
    filter_value: Optional[str] = typer.Option(
        None,
        "--filter-value",
        help="Valore di --filter-column da importare (senza: elenca i valori)"
    ),
    skip_confirmation: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Salta la conferma"
    ),
) -> None:
    """
    Importa transazioni da un file CSV.

    Le colonne vengono riconosciute dalle intestazioni; importo e data sono
    obbligatori. I duplicati di transazioni esistenti vengono saltati.
    """
    console.print()
    console.print(Panel.fit(
        "[bold green]Importa CSV[/bold green]",
        border_style="green"
    ))
    console.print()

    try:
        try:
            options = ImportOptions(
                date_format=date_format,
                delimiter=delimiter,
                has_header=not no_header,
                encoding=encoding,
                ignore_zero_amounts=skip_zero,
                ignore_duplicates=not allow_duplicates,
                create_missing_categories=not no_new_categories,
                filter_column=filter_column,
                filter_value=filter_value,
            )
        except ValidationError as e:
            raise ImportMappingError("; ".join(error["msg"] for error in e.errors())) from e

        factory = open_store()
        service = ImportService(factory)

        with factory() as session:
            account = (
                repository.get_account_by_name(session, account_name)
                if account_name else repository.first_account(session)
            )
            if account is None:
                raise ImportMappingError(f"Libro non trovato: {account_name or '(nessuno)'}")
            account_id, account_label = account.id, account.name

            if conto:
                found, missing = repository.find_conti(session, [conto])
                if missing or found[0].account_id != account_id:
                    raise ImportMappingError(f"Conto non trovato nel libro {account_label}: {conto}")
                options.default_conto_id = found[0].id

        result = service.parse_file(file, options)

        if filter_column and filter_value is None:
            column = result.column_index(filter_column)
            if column is None:
                raise ImportMappingError(f"Colonna non trovata: {filter_column}")
            values_table = Table(title=f"Valori di {result.headers[column]}")
            values_table.add_column("Valore", style="cyan")
            values_table.add_column("Righe", justify="right")
            for account_value in extract_unique_account_values(result, column):
                values_table.add_row(account_value.value, str(account_value.row_count))
            console.print(values_table)
            console.print("[dim]Scegli un valore con --filter-value[/dim]")
            raise typer.Exit(0)

        mapping = apply_column_overrides(detect_column_mapping(result.headers), result, overrides or [])

        mapping_table = Table(title="Colonne")
        mapping_table.add_column("Campo", style="cyan")
        mapping_table.add_column("Colonna CSV", style="green")
        for field in CSVField:
            column = mapping.get(field)
            label = result.headers[column] if column is not None else ""
            mapping_table.add_row(field.label + (" *" if field.is_required else ""), label)
        console.print(f"[dim]Libro: {account_label} - {result.row_count} righe[/dim]")
        console.print(mapping_table)
        console.print()

        problems = validate_mapping(mapping)
        if problems:
            raise ImportMappingError("; ".join(problems))

        if not result.rows:
            console.print("[yellow]Nessuna riga da importare[/yellow]")
            raise typer.Exit(0)

        console.print("[bold]Anteprima (prime 5 righe):[/bold]")
        preview_table = Table()
        preview_table.add_column("Riga", justify="right")
        preview_table.add_column("Data")
        preview_table.add_column("Importo", justify="right")
        preview_table.add_column("Categoria")
        preview_table.add_column("Descrizione")
        preview_table.add_column("Errore", style="red")

        for row in generate_preview(result, mapping, options, max_rows=5):
            preview_table.add_row(
                str(row.row_number),
                row.date.strftime("%d/%m/%Y") if row.date else "",
                format_currency(row.amount) if row.amount is not None else "",
                row.category or "",
                row.description or "",
                row.error or "",
            )

        console.print(preview_table)
        console.print()

        if not skip_confirmation:
            if not typer.confirm(f"Importare {result.row_count} righe nel libro {account_label}?"):
                console.print("[yellow]Importazione annullata[/yellow]")
                raise typer.Exit(0)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("Importazione in corso...", total=result.row_count)
            outcome = service.import_transactions(
                result,
                mapping,
                options,
                account_id,
                progress_callback=lambda done, total: progress.update(task, completed=done),
                source=file.name,
            )

        console.print(f"[green]✓[/green] {outcome.imported_count} transazioni importate")
        if outcome.duplicates_skipped:
            console.print(f"[yellow]{outcome.duplicates_skipped} duplicati saltati[/yellow]")
        if outcome.zero_amounts_skipped:
            console.print(f"[yellow]{outcome.zero_amounts_skipped} righe con importo zero saltate[/yellow]")

        if outcome.errors:
            errors_table = Table(title=f"{outcome.error_count} righe con errori")
            errors_table.add_column("Riga", justify="right")
            errors_table.add_column("Errore", style="red")
            for issue in outcome.errors[:10]:
                errors_table.add_row(str(issue.row_number), issue.message)
            console.print(errors_table)
        console.print()

    except KeyboardInterrupt:
        console.print()
        console.print("[yellow]Importazione annullata[/yellow]")
        raise typer.Exit(0)

    except (CSVImportError, SQLAlchemyError) as e:
        console.print()
        console.print(f"[red]ERRORE: {e}[/red]")
        logger.error(f"CSV import failed: {e}")
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
