from __future__ import annotations

import argparse
import sys

# The app is only created inside the chosen subcommand so a --port override is applied before
# settings are read.


def _print_error(msg: str) -> None:
    sys.stderr.write(f"ERROR: {msg}\n")
    sys.stderr.flush()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dvelop-mcp",
        description="d.velop pilot MCP server (streamable HTTP)",
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    # serve
    p_serve = sub.add_parser(
        "serve",
        help="Run the MCP HTTP server.",
    )
    p_serve.add_argument(
        "--host",
        required=False,
        help="Bind address (default: APP_HOST or 0.0.0.0)",
    )
    p_serve.add_argument(
        "--port",
        required=False,
        type=int,
        help="Listening port (default: PORT or 3000)",
    )

    # tools
    sub.add_parser(
        "tools",
        help="Print the registered tools and their schemas as JSON.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    from dvelop_mcp.cli.commands import describe_tools, serve, to_json

    try:
        if args.cmd == "serve":
            serve(host=args.host, port=args.port)
            return

        if args.cmd == "tools":
            print(to_json(describe_tools()))
            return

        # Should not reach here; argparse enforces subcommand
        _print_error("No command provided")
        sys.exit(2)

    except OSError as e:
        _print_error(str(e))
        sys.exit(1)
    except RuntimeError as e:
        _print_error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
