from enum import IntEnum


class ReportingLevel(IntEnum):
    QUIET = 0
    BASIC = 1
    VERBOSE = 2


def color_text(text, color_code):
    return f"\033[{color_code}m{text}\033[0m"

def debug_text(text):
    return f"{color_text('DEBUG', '31')} {text}"

def info_text(text):
    return f"{color_text('INFO', '34')}  {text}"

def warning_text(text):
    return f"{color_text('WARNING', '33')} {text}"

def sending_text(text):
    return f"{color_text('SENDING  ', '32')} {text}"

def received_text(text):
    return f"{color_text('RECEIVED ', '35')} {text}"


def report(message: str, level: ReportingLevel, minimum: ReportingLevel = ReportingLevel.BASIC) -> None:
    """Print ``message`` when ``level`` is at least ``minimum``."""
    if level >= minimum:
        print(message)
