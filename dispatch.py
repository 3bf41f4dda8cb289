"""Pick a printer for a generated sticker and submit it."""

import logging
from typing import List, Optional

import config
import printer
from models import Printer, PrintOptions, PrintResult

logger = logging.getLogger(__name__)


def default_options() -> PrintOptions:
    return PrintOptions(copies=config.PRINT_COPIES, media=config.PRINT_MEDIA,
                        fit_to_page=config.PRINT_FIT_TO_PAGE)

def _pick(printers: List[Printer]) -> Printer:
    # the system default wins if it is among the candidates
    return next((p for p in printers if p.is_default), printers[0])

def print_to_usb(image_source, options: Optional[PrintOptions] = None) -> PrintResult:
    usb = printer.list_usb_printers()
    if not usb:
        raise printer.PrinterNotFoundError("No USB printers found")
    target = _pick(usb)
    job_id = printer.print_image(target.name, image_source, options)
    return PrintResult(printer_name=target.name, job_id=job_id)

def print_to_bluetooth(image_source, options: Optional[PrintOptions] = None) -> PrintResult:
    bluetooth = printer.list_bluetooth_printers()
    if not bluetooth:
        raise printer.PrinterNotFoundError("No Bluetooth printers found")
    target = _pick(bluetooth)
    job_id = printer.print_image(target.name, image_source, options)
    return PrintResult(printer_name=target.name, job_id=job_id)

def dispatch_image(image: bytes, printer_name: Optional[str] = None,
                   options: Optional[PrintOptions] = None) -> PrintResult:
    """
    Print to the named printer (the configured one by default) if the
    spooler knows it, otherwise to the first USB printer. No retries.
    """
    printer_name = printer_name or config.PRINTER_NAME
    options = options or default_options()

    target = printer.get_printer(printer_name)
    if target is not None:
        logger.info('Sending %d byte image to "%s" (%s)', len(image), target.name, target.uri)
        job_id = printer.print_image(target.name, image, options)
        return PrintResult(printer_name=target.name, job_id=job_id)

    logger.warning('Printer "%s" not found, falling back to USB printer', printer_name)
    result = print_to_usb(image, options)
    logger.info("Print job %s submitted to %s", result.job_id, result.printer_name)
    return result

def dispatch_image_quietly(image: bytes, printer_name: Optional[str] = None,
                           options: Optional[PrintOptions] = None) -> Optional[PrintResult]:
    """Like dispatch_image, but failures are logged and None is returned."""
    try:
        return dispatch_image(image, printer_name, options)
    except Exception:
        logger.exception("Printing failed; the generated image is still returned")
        return None
