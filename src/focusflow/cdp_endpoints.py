import subprocess
from typing import List, Optional, Tuple

import httpx

from .log import get_logger

logger = get_logger(__name__)


def _get_default_route_ip() -> Optional[str]:
    try:
        proc = subprocess.run(
            ["ip", "route", "show", "default"],
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
        )
    except OSError:
        return None
    # "default via 172.17.0.1 dev eth0 ..."
    for line in proc.stdout.splitlines():
        fields = line.split()
        if "via" in fields:
            idx = fields.index("via")
            if idx + 1 < len(fields):
                return fields[idx + 1]
    return None


def build_cdp_base_urls(port: int, allow_nat: bool = False) -> List[str]:
    bases = [f"http://127.0.0.1:{port}"]
    if allow_nat:
        host_ip = _get_default_route_ip()
        if host_ip and host_ip != "127.0.0.1":
            bases.append(f"http://{host_ip}:{port}")
    return bases


def probe_json(url: str, timeout_s: float = 2.0) -> Optional[dict]:
    try:
        with httpx.Client(timeout=timeout_s) as client:
            resp = client.get(url)
    except httpx.HTTPError as exc:
        logger.debug("Probe of %s failed: %s", url, exc)
        return None
    if resp.status_code != 200:
        return None
    try:
        data = resp.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def select_cdp_endpoint(
    port: int, allow_nat: bool = False, timeout_s: float = 2.0
) -> Tuple[str, Optional[dict]]:
    """Return the first base URL answering ``/json/version``.

    Falls back to the loopback address with no version info so the caller
    gets a connection error from Playwright rather than from here.
    """
    bases = build_cdp_base_urls(port, allow_nat=allow_nat)
    for base in bases:
        version = probe_json(f"{base}/json/version", timeout_s=timeout_s)
        if version is not None:
            return base, version
    return bases[0], None
