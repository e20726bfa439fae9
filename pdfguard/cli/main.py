"""
Command-line interface for pdfguard.
"""

import os
import sys
from functools import reduce

import click
from rich.console import Console
from rich.table import Table

from pdfguard import __version__
from pdfguard.crypto.handler import Permissions, Revision
from pdfguard.exceptions import PdfGuardError
from pdfguard.tools import load_builtin_plugins
from pdfguard.tools.common.interfaces import ToolContext
from pdfguard.tools.common.pipeline import registry
from pdfguard.core.utils import format_file_size

console = Console()

PERMISSION_CHOICES = {
    "print": Permissions.PRINT,
    "modify": Permissions.MODIFY,
    "copy": Permissions.COPY,
    "annotate": Permissions.ANNOTATE,
    "fill-forms": Permissions.FILL_FORMS,
    "accessibility": Permissions.EXTRACT_FOR_ACCESSIBILITY,
    "assemble": Permissions.ASSEMBLE,
    "print-high-quality": Permissions.PRINT_HIGH_QUALITY,
    "all": Permissions.ALL,
}

REVISION_CHOICES = [str(int(revision)) for revision in Revision]


def _fail(error: Exception) -> None:
    kind = getattr(error, "kind", type(error).__name__)
    console.print(f"\n[bold red]✗ Error ({kind}):[/bold red] {error}")
    sys.exit(1)


def _run(tool_name: str, context: ToolContext):
    load_builtin_plugins()
    try:
        return registry.run(tool_name, context)
    except (PdfGuardError, ValueError) as error:
        _fail(error)


@click.group()
@click.version_option(version=__version__)
def cli():
    """
    pdfguard - apply, check and remove PDF password protection.
    """
    pass


@cli.command(name="protect")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.argument('output_pdf', type=click.Path(dir_okay=False))
@click.option('--password', '-p', required=True, help='Password required to open the PDF')
@click.option('--owner-password', help='Owner password (defaults to --password)')
@click.option(
    '--revision', '-r',
    type=click.Choice(REVISION_CHOICES),
    default=str(int(Revision.AES_256)),
    show_default=True,
    help='Security handler revision (2/3 RC4, 4 AES-128, 6 AES-256)'
)
@click.option(
    '--allow', '-a',
    multiple=True,
    type=click.Choice(sorted(PERMISSION_CHOICES)),
    help='Grant a permission to user-password holders (repeatable)'
)
@click.option('--no-encrypt-metadata', is_flag=True, help='Leave the XMP metadata stream readable')
def protect(input_pdf, output_pdf, password, owner_password, revision, allow, no_encrypt_metadata):
    """
    Encrypt a PDF with a password.

    Examples:

        pdfguard protect input.pdf locked.pdf -p secret

        pdfguard protect input.pdf locked.pdf -p secret -r 4 -a print -a copy
    """
    permissions = reduce(lambda acc, name: acc | PERMISSION_CHOICES[name], allow, Permissions.NONE)
    context = ToolContext(
        input_path=input_pdf,
        output_path=output_pdf,
        config={
            "password": password,
            "owner_password": owner_password,
            "revision": int(revision),
            "permissions": permissions,
            "encrypt_metadata": not no_encrypt_metadata,
        },
    )
    console.print(f"\n[bold cyan]Protecting {os.path.basename(input_pdf)}...[/bold cyan]")
    result = _run("encrypt", context)
    console.print(f"[bold green]✓ Protected PDF written to {result}[/bold green]")
    console.print(f"[dim]Size: {format_file_size(result.stat().st_size)}[/dim]\n")


@cli.command(name="unprotect")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.argument('output_pdf', type=click.Path(dir_okay=False))
@click.option('--password', '-p', required=True, help='User or owner password')
def unprotect(input_pdf, output_pdf, password):
    """
    Remove password protection from a PDF.

    Example:

        pdfguard unprotect locked.pdf plain.pdf -p secret
    """
    context = ToolContext(
        input_path=input_pdf,
        output_path=output_pdf,
        config={"password": password},
    )
    result = _run("decrypt", context)
    console.print(f"\n[bold green]✓ Decrypted PDF written to {result}[/bold green]\n")


@cli.command(name="check")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--assume-protected-on-error',
    is_flag=True,
    help='Report unreadable files as protected instead of failing'
)
def check(input_pdf, assume_protected_on_error):
    """
    Check whether a PDF is password protected.

    Exits with 0 when protected and 2 when not.
    """
    context = ToolContext(
        input_path=input_pdf,
        config={"assume_protected_on_error": assume_protected_on_error},
    )
    protected = _run("inspect", context)
    if protected:
        console.print(f"[bold yellow]🔒 {os.path.basename(input_pdf)} is protected[/bold yellow]")
        sys.exit(0)
    console.print(f"[bold green]🔓 {os.path.basename(input_pdf)} is not protected[/bold green]")
    sys.exit(2)


@cli.command(name="info")
@click.argument('input_pdf', type=click.Path(exists=True, dir_okay=False))
def show_info(input_pdf):
    """
    Display the encryption envelope of a PDF without decrypting it.

    Example:

        pdfguard info locked.pdf
    """
    context = ToolContext(input_path=input_pdf, config={"detailed": True})
    info = _run("inspect", context)

    table = Table(title=f"PDF Security: {os.path.basename(input_pdf)}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("File Size", format_file_size(os.path.getsize(input_pdf)))
    table.add_row("PDF Version", info.pdf_version)
    table.add_row("Objects", str(info.object_count))
    table.add_row("Encrypted", "Yes" if info.protected else "No")
    if info.protected:
        table.add_row("Revision", str(info.revision))
        table.add_row("Cipher", info.method.lstrip("/"))
        table.add_row("Key Length", f"{info.key_bits} bits")
        granted = [name for name, flag in PERMISSION_CHOICES.items() if name != "all" and flag in info.permissions]
        table.add_row("Permissions", ", ".join(granted) or "none")
        table.add_row("Metadata Encrypted", "Yes" if info.encrypt_metadata else "No")

    console.print()
    console.print(table)
    console.print()


def main():
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
