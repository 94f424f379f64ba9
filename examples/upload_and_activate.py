#!/usr/bin/env python3
"""Example: log in, upload a TRDP XML configuration and activate it if the backend accepts it."""

import sys
from pathlib import Path

from trdp_console import Console, ValidationStatus
from trdp_console.errors import ApiError


def main() -> None:
    url = "http://127.0.0.1:8080"  # change to your backend
    xml_path = Path("device.xml")

    try:
        with Console.connect(url) as console:
            identity = console.session.login("admin", "admin")
            print(f"Logged in as {identity.username} ({identity.role})")

            doc = console.configs.create(xml_path.stem, xml_path.read_text(encoding="utf-8"))
            print(f"Stored config {doc.id}: {doc.validation_status}")

            if doc.validation_status == ValidationStatus.VALID.value:
                console.configs.activate(doc.id)
                print(console.configs.notice)
            else:
                print("Not activating an invalid configuration", file=sys.stderr)

            console.session.logout()
    except ApiError as e:
        print(f"Backend error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
