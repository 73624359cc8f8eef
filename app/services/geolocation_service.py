"""
Best-effort client location lookup used to enrich ingested telemetry
"""
from typing import Dict, Mapping, Optional
import ipaddress
import logging
import re

logger = logging.getLogger(__name__)

CLIENT_IP_HEADERS = ("cf-connecting-ip", "x-real-ip", "x-client-ip")

COUNTRY_NAMES = {
    "NG": "Nigeria", "US": "United States", "GB": "United Kingdom", "CA": "Canada",
    "DE": "Germany", "FR": "France", "JP": "Japan", "AU": "Australia",
    "BR": "Brazil", "IN": "India", "CN": "China", "RU": "Russia",
    "ZA": "South Africa", "KE": "Kenya", "GH": "Ghana", "EG": "Egypt",
    "MA": "Morocco", "TN": "Tunisia", "DZ": "Algeria", "ET": "Ethiopia",
    "UG": "Uganda", "TZ": "Tanzania", "MX": "Mexico", "AR": "Argentina",
    "CL": "Chile", "CO": "Colombia", "PE": "Peru", "VE": "Venezuela",
    "IT": "Italy", "ES": "Spain", "PT": "Portugal", "NL": "Netherlands",
    "BE": "Belgium", "SE": "Sweden", "NO": "Norway", "DK": "Denmark",
    "FI": "Finland", "PL": "Poland", "CZ": "Czech Republic", "AT": "Austria",
    "CH": "Switzerland", "IE": "Ireland", "KR": "South Korea", "TH": "Thailand",
    "MY": "Malaysia", "SG": "Singapore", "PH": "Philippines", "ID": "Indonesia",
    "VN": "Vietnam", "NZ": "New Zealand", "IL": "Israel", "AE": "United Arab Emirates",
    "SA": "Saudi Arabia", "TR": "Turkey", "IR": "Iran", "IQ": "Iraq",
    "PK": "Pakistan", "BD": "Bangladesh", "LK": "Sri Lanka",
    "XX": "Unknown", "DEV": "Development",
}

# Coarse prefix guesses; anything else is reported as unknown
IP_PATTERNS = (
    (re.compile(r"^41\.\d+\.\d+\.\d+$"), "NG"),
    (re.compile(r"^196\.\d+\.\d+\.\d+$"), "ZA"),
    (re.compile(r"^8\.8\.\d+\.\d+$"), "US"),
    (re.compile(r"^1\.1\.\d+\.\d+$"), "US"),
)


def country_name(country_code: str) -> str:
    return COUNTRY_NAMES.get(country_code, country_code)


def get_client_ip(headers: Mapping[str, str], peer: Optional[str] = None) -> Optional[str]:
    """First hop of X-Forwarded-For, then the single-value proxy headers, then the socket peer"""
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if value:
            return value.strip()
    return peer


def _is_development(ip: str) -> bool:
    if ip in ("localhost", "testclient"):
        return True
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_loopback or ip.startswith("192.168.") or ip.startswith("10.")


def lookup_ip(ip: Optional[str]) -> Dict[str, str]:
    if not ip:
        return {"country_code": "XX", "country_name": "Unknown", "source": "unknown"}

    if _is_development(ip):
        return {"country_code": "DEV", "country_name": "Development", "source": "development"}

    for pattern, code in IP_PATTERNS:
        if pattern.match(ip):
            return {"country_code": code, "country_name": country_name(code), "source": "ip_pattern_guess"}

    logger.debug(f"No location match for client address {ip}")
    return {"country_code": "XX", "country_name": "Unknown", "source": "unknown"}
