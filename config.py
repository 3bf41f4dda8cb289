import os
from dotenv import load_dotenv

load_dotenv()  # reads .env from the cwd

# API token for simple auth. Change this to a strong secret.
API_TOKEN = os.environ.get('PRINT_API_TOKEN', 'change_this_token')
HOST = os.environ.get('HOST', '0.0.0.0')
PORT = int(os.environ.get('PORT', '3000'))
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# CUPS destination name, must match `lpstat -p` exactly.
PRINTER_NAME = os.environ.get('PRINTER_NAME', 'Canon XK130 series 3')

# Seconds between printer watcher passes
WATCH_INTERVAL = float(os.environ.get('WATCH_INTERVAL', '30'))
# Printers the watcher keeps enabled. Empty means all USB/Bluetooth printers.
WATCH_PRINTERS = [n.strip() for n in os.environ.get('WATCH_PRINTERS', '').split(',') if n.strip()]
if not WATCH_PRINTERS and PRINTER_NAME:
    WATCH_PRINTERS = [PRINTER_NAME]

# Defaults for sticker jobs
PRINT_COPIES = int(os.environ.get('PRINT_COPIES', '1'))
PRINT_MEDIA = os.environ.get('PRINT_MEDIA') or None
PRINT_FIT_TO_PAGE = os.environ.get('PRINT_FIT_TO_PAGE', 'true').lower() in ('1', 'true', 'yes', 'on')
