"""
CUPS printer discovery, health and job submission.

Everything here shells out to the CUPS command line tools (lpstat, lp,
cupsenable, cupsaccept, lpoptions, lpq, cancel). Commands are always built
as argument lists, never as shell strings, so printer names and option
values cannot escape the command line.

Parsing of the free-text tool output is kept in the pure ``parse_*``
functions so another backend only has to produce the same records.
"""

import logging
import os
import re
import subprocess
import tempfile
import time
import uuid
from typing import Dict, List, Optional, Union

from models import Printer, PrintOptions, ResumeResult

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.pdf', '.tiff', '.tif')

_PRINTER_LINE = re.compile(r'printer (\S+) (.*)')
_DEFAULT_DEST = re.compile(r'system default destination: (.+)')
_DEVICE_LINE = re.compile(r'device for (.+?): (.+)')
_REQUEST_ID = re.compile(r'request id is .+-(\d+)')
_MEDIA_SIZES = re.compile(r'PageSize/Media Size: (.+)')

ImageSource = Union[bytes, bytearray, str, os.PathLike]


class PrinterError(Exception):
    """Base class for spooler related failures."""

class DiscoveryError(PrinterError):
    """A spooler query could not be run."""

class EnableError(PrinterError):
    """cupsenable/cupsaccept failed."""

class UnsupportedFormatError(PrinterError):
    pass

class PrinterNotFoundError(PrinterError):
    pass

class SubmitError(PrinterError):
    """The spooler rejected the job."""

class JobError(PrinterError):
    """Job status or cancel command failed."""


def _run(args: List[str]) -> subprocess.CompletedProcess:
    logger.debug("Running: %s", " ".join(args))
    # undecodable bytes must not escape as UnicodeDecodeError
    return subprocess.run(args, capture_output=True, text=True, encoding='utf-8', errors='replace')

def _query(args: List[str], error_cls=DiscoveryError) -> str:
    """Run a spooler command and return stdout, raising error_cls on failure."""
    try:
        proc = _run(args)
    except OSError as e:
        raise error_cls(f"{args[0]} could not be executed: {e}") from e
    if proc.returncode != 0:
        stderr_snippet = (proc.stderr or '').strip()
        raise error_cls(f"{' '.join(args)} failed (exit {proc.returncode}): {stderr_snippet}")
    return proc.stdout or ''


# ---- discovery -----------------------------------------------------------

def parse_printers(status_output: str, device_output: str) -> List[Printer]:
    """
    Build printer records from `lpstat -p -d` and `lpstat -v` output.

    The device line for a printer is the first line that contains its name,
    so a printer whose name is a substring of another printer's device line
    may pick up that printer's URI.
    """
    status_output = status_output or ''
    device_lines = (device_output or '').splitlines()

    default_name = ''
    m = _DEFAULT_DEST.search(status_output)
    if m:
        default_name = m.group(1).strip()

    printers = []
    for line in status_output.splitlines():
        m = _PRINTER_LINE.match(line)
        if not m:
            continue
        name = m.group(1)
        status = m.group(2).strip() or 'unknown'

        uri = ''
        device_line = next((d for d in device_lines if name in d), None)
        if device_line:
            dm = _DEVICE_LINE.search(device_line)
            if dm:
                uri = dm.group(2).strip()

        printers.append(Printer(name=name, uri=uri, status=status, is_default=(name == default_name)))
    return printers

def list_printers() -> List[Printer]:
    status_output = _query(['lpstat', '-p', '-d'])
    device_output = _query(['lpstat', '-v'])
    printers = parse_printers(status_output, device_output)
    logger.debug("Discovered %d printer(s): %s", len(printers), ', '.join(p.name for p in printers))
    return printers

def list_usb_printers() -> List[Printer]:
    return [p for p in list_printers() if p.is_usb]

def list_bluetooth_printers() -> List[Printer]:
    return [p for p in list_printers() if p.is_bluetooth]

def get_printer(printer_name: str) -> Optional[Printer]:
    for p in list_printers():
        if p.name == printer_name:
            return p
    return None


# ---- health --------------------------------------------------------------

def is_printer_enabled(printer_name: str) -> bool:
    """
    False only when `lpstat -p` reports the printer disabled or paused.
    An unknown printer counts as enabled since nothing blocks it.
    """
    try:
        proc = _run(['lpstat', '-p', printer_name])
    except OSError as e:
        raise DiscoveryError(f"Failed to check printer status: {e}") from e
    text = (proc.stdout or '').lower()
    return not ('disabled' in text or 'paused' in text)

def enable_printer(printer_name: str) -> str:
    """Resume the printer and make it accept jobs again. Safe to repeat."""
    _query(['cupsenable', printer_name], EnableError)
    _query(['cupsaccept', printer_name], EnableError)
    logger.info("Enabled printer %s", printer_name)
    return f'Printer "{printer_name}" has been enabled and is now accepting jobs'

def check_and_resume_printer(printer_name: str, auto_enable: bool = True) -> ResumeResult:
    if is_printer_enabled(printer_name):
        return ResumeResult(was_enabled=True, message=f'Printer "{printer_name}" is ready')
    if auto_enable:
        message = enable_printer(printer_name)
        return ResumeResult(was_enabled=False, message=f'{message} (was paused/disabled)')
    return ResumeResult(was_enabled=False, message=f'Printer "{printer_name}" is paused/disabled')

def get_printer_info(printer_name: str) -> str:
    return _query(['lpoptions', '-p', printer_name, '-l'])

def parse_media_sizes(info: str) -> List[str]:
    m = _MEDIA_SIZES.search(info or '')
    if not m:
        return []
    # the default choice is marked with a leading '*'
    sizes = [s.lstrip('*') for s in m.group(1).split()]
    return [s for s in sizes if s]

def get_media_sizes(printer_name: str) -> List[str]:
    return parse_media_sizes(get_printer_info(printer_name))


# ---- submission ----------------------------------------------------------

def validate_image_file(image_path: str) -> None:
    if not os.path.isfile(image_path):
        raise FileNotFoundError(f"File not found: {image_path}")
    ext = os.path.splitext(image_path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Unsupported file format: {ext or '(none)'}. Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if not os.access(image_path, os.R_OK):
        raise UnsupportedFormatError(f"File is not readable: {image_path}")

def build_print_command(printer_name: str, image_path: str, options: Optional[PrintOptions] = None) -> List[str]:
    options = options or PrintOptions()
    args = ['lp', '-d', printer_name]
    if options.copies > 1:
        args += ['-n', str(options.copies)]
    if options.media:
        args += ['-o', f'media={options.media}']
    if options.grayscale:
        args += ['-o', 'ColorModel=Gray']
    if options.fit_to_page:
        args += ['-o', 'fit-to-page']
    for key, value in options.extra_options.items():
        args += ['-o', f'{key}={value}']
    args.append(image_path)
    return args

def parse_job_id(output: str) -> str:
    """Job number from "request id is <printer>-<n> (1 file(s))", else the raw output."""
    m = _REQUEST_ID.search(output or '')
    if m:
        return m.group(1)
    return (output or '').strip()

def _temp_image_path() -> str:
    name = f"print-temp-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.png"
    return os.path.join(tempfile.gettempdir(), name)

def _write_temp_image(path: str, data: bytes) -> None:
    with open(path, 'wb') as f:
        f.write(data)
    logger.debug("Wrote %d bytes to %s", len(data), path)

def _remove_temp_file(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("Could not delete temporary file %s: %s", path, e)

def print_image(printer_name: str, image_source: ImageSource,
                options: Union[PrintOptions, Dict, None] = None) -> str:
    """
    Submit an image file or in-memory image to a CUPS printer.

    Returns the spooler job id. A temporary file written for an in-memory
    image is removed before returning, whatever the outcome.
    """
    if isinstance(options, dict):
        options = PrintOptions(**options)
    options = options or PrintOptions()

    tmp_path = None
    try:
        if isinstance(image_source, (bytes, bytearray)):
            # assigned before writing so a failed write is cleaned up too
            tmp_path = _temp_image_path()
            _write_temp_image(tmp_path, bytes(image_source))
            image_path = tmp_path
        else:
            image_path = os.fspath(image_source)
            validate_image_file(image_path)

        # checked against a fresh discovery right before submitting
        printers = list_printers()
        if not any(p.name == printer_name for p in printers):
            raise PrinterNotFoundError(
                f"Printer not found: {printer_name} (available: {', '.join(p.name for p in printers) or 'none'})"
            )

        cmd = build_print_command(printer_name, image_path, options)
        job_id = parse_job_id(_query(cmd, SubmitError))
        logger.info("Submitted print job %s to %s", job_id, printer_name)
        return job_id
    finally:
        if tmp_path and os.path.exists(tmp_path):
            _remove_temp_file(tmp_path)

def get_job_status(job_id: Optional[str] = None, printer_name: Optional[str] = None) -> str:
    args = ['lpq']
    if printer_name:
        args += ['-P', printer_name]
    if job_id:
        args.append(str(job_id))
    return _query(args, JobError)

def cancel_job(job_id: str) -> None:
    _query(['cancel', str(job_id)], JobError)
    logger.info("Cancelled print job %s", job_id)
