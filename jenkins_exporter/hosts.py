"""Target list parsing."""


def parse_hosts(raw: str) -> list[str]:
    """
    Split a comma-separated list of Jenkins base URLs.

    Entries are stripped and empty ones dropped; order is preserved.
    URLs are not validated here, a malformed entry just fails at fetch time.
    """
    hosts: list[str] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part:
            hosts.append(part)
    return hosts
