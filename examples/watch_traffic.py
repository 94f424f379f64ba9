#!/usr/bin/env python3
"""Example: refresh the PD/MD collections on an interval; graceful shutdown on Ctrl+C."""

import sys
import time

from trdp_console import Console
from trdp_console.errors import ApiError


def main() -> None:
    url = "http://127.0.0.1:8080"  # change to your backend
    interval_s = 2.0

    with Console.connect(url) as console:
        try:
            console.session.login("admin", "admin")
            print(f"Refreshing traffic every {interval_s}s (Ctrl+C to stop)...")
            while True:
                snap = console.traffic.refresh()
                print(
                    f"PD out={len(snap.pd_outgoing)} PD in={len(snap.pd_incoming)} "
                    f"MD in={len(snap.md_incoming)}"
                )
                time.sleep(interval_s)
        except KeyboardInterrupt:
            print("\nStopped.")
        except ApiError as e:
            print(f"Backend error: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
