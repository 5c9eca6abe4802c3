"""Global utilities for the CLI.
"""


def format_number(n: float) -> str:
    """Return a number with suffix k, M, G or nothing.
    The string is at most 7 chars unless the size exceed 1 T.
    """
    if n < 1000:
        return f"{int(n)} "
    elif n < 1000000:
        return f"{(int(n / 100) / 10):.1f} k"
    elif n < 1000000000:
        return f"{(int(n / 100000) / 10):.1f} M"
    else:
        return f"{(int(n / 100000000) / 10):.1f} G"


def format_command_line(args) -> str:
    """Format a command line for printing, arguments containing spaces are quoted.
    """
    return " ".join(f'"{arg}"' if " " in arg or not len(arg) else arg for arg in args)
