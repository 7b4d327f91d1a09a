from __future__ import annotations

import sys

from cyberrisk_cli.cli import main as cli_main
from cyberrisk_cli.exceptions import CyberRiskError


def main() -> None:
    try:
        cli_main()
    except CyberRiskError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(exc.exit_code)
    except KeyboardInterrupt:
        print()
        sys.exit(130)


if __name__ == "__main__":
    main()
