import inspect
import time
from datetime import datetime, timezone
import os

import psutil
from rich import print as _print

BYTES_PER_MB = 1024 * 1024


def Print(logType: str, message: str) -> None:
    """
    Prints a log message with timestamp, function name, symbols wrapping the logType, and the message.
    """
    try:
        # Mapping of logType to symbols
        logTypeSymbols = {
            'SUCCESS': ('^^^', '^^^'),
            'FAILURE': ('###', '###'),
            'STATE': ('~~~', '~~~'),
            'INFO': ('---', '---'),
            'IMPORTANT': ('===', '==='),
            'CRITICAL': ('***', '***'),
            'EXCEPTION': ('!!!', '!!!'),
            'WARNING': ('(((', ')))'),
            'DEBUG': ('[[[', ']]]'),
            'ATTEMPT': ('???', '???'),
            'STARTING': ('>>>', '>>>'),
            'PROGRESS': ('vvv', 'vvv'),
            'COMPLETED': ('<<<', '<<<'),
            'HEADER': ('###', '###'),
        }

        # Mapping of logType to styles
        logTypeStyles = {
            'SUCCESS': 'green',
            'FAILURE': 'red bold',
            'STATE': 'cyan',
            'INFO': 'blue',
            'IMPORTANT': 'magenta',
            'CRITICAL': 'red bold',
            'EXCEPTION': 'red bold',
            'WARNING': 'yellow',
            'DEBUG': 'white',
            'ATTEMPT': 'cyan',
            'STARTING': 'green',
            'PROGRESS': 'blue',
            'COMPLETED': 'green',
            'HEADER': 'magenta bold',
        }

        current_time = time.time()
        timestamp = datetime.fromtimestamp(current_time, tz=timezone.utc).isoformat(timespec='microseconds') + 'Z'

        logTypeUpper = logType.upper()
        before_symbol, after_symbol = logTypeSymbols.get(logTypeUpper, ('', ''))

        formattedLogType = f"{before_symbol} {logTypeUpper} {after_symbol}"

        style = logTypeStyles.get(logTypeUpper, '')
        if style:
            formattedLogType = f"[{style}]{formattedLogType}[/{style}]"

        # Get the caller function name
        caller_frame = inspect.stack()[1]
        function_name = caller_frame.function

        # If the caller is Print, get the next frame
        if function_name == 'Print':
            caller_frame = inspect.stack()[2]
            function_name = caller_frame.function

        functionNamePadding = 40
        paddedFunctionName = function_name.ljust(functionNamePadding)

        output_line = f"{timestamp} {formattedLogType} {paddedFunctionName} {message}"

        _print(output_line)

    except Exception as e:
        error_message = f"Something went wrong when attempting to print.\nError: {e}"
        print(error_message)


def process_memory_usage() -> str:
    """
    Returns a string with the resident memory of the current process.

    Decoding a large photo is the memory peak of a compression run, so this
    is logged right after a bitmap has been decoded.
    """
    current_process = psutil.Process(os.getpid())
    memory_usage_mb = current_process.memory_info().rss / BYTES_PER_MB
    return f"Process Memory Usage: {memory_usage_mb:.2f} MB"


def get_file_size_mb(size_bytes: int) -> float:
    """Convert a byte count to megabytes (1 MB = 1024 * 1024 bytes)."""
    return size_bytes / BYTES_PER_MB


def mb_to_bytes(size_mb: float) -> int:
    """Convert megabytes to a whole number of bytes."""
    return int(size_mb * BYTES_PER_MB)


def create_error_message(message: str, error) -> str:
    """
    Build a "message: detail" string from a base message and any error value.

    Example:
        create_error_message("HEIC conversion failed", ValueError("bad box"))
        -> 'HEIC conversion failed: bad box'
    """
    return f"{message}: {error}"
