# Google service → OAuth scope catalogue.
# Created: 2026-10-16

from __future__ import annotations

GOOGLE_SERVICE_SCOPES: dict[str, list[str]] = {
    "gmail": [
        "https://www.googleapis.com/auth/gmail.readonly",
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.modify",
        "https://www.googleapis.com/auth/gmail.labels",
    ],
    "calendar": [
        "https://www.googleapis.com/auth/calendar.readonly",
        "https://www.googleapis.com/auth/calendar.events",
    ],
    "drive": [
        "https://www.googleapis.com/auth/drive.readonly",
        "https://www.googleapis.com/auth/drive.file",
    ],
    "contacts": ["https://www.googleapis.com/auth/contacts.readonly"],
    "docs": [
        "https://www.googleapis.com/auth/documents.readonly",
        "https://www.googleapis.com/auth/documents",
    ],
    "sheets": [
        "https://www.googleapis.com/auth/spreadsheets.readonly",
        "https://www.googleapis.com/auth/spreadsheets",
    ],
}

DEFAULT_SERVICES: tuple[str, ...] = ("gmail", "calendar", "drive")


def unknown_services(services: list[str]) -> list[str]:
    return [s for s in services if s not in GOOGLE_SERVICE_SCOPES]


def scopes_for_services(services: list[str]) -> list[str]:
    """Map service names to a de-duplicated, order-preserving scope list.

    Unknown services contribute nothing.
    """
    scopes: dict[str, None] = {}
    for service in services:
        for scope in GOOGLE_SERVICE_SCOPES.get(service, []):
            scopes[scope] = None
    return list(scopes)


def services_for_scopes(scopes: list[str]) -> list[str]:
    """Services whose every scope appears in ``scopes``."""
    granted = set(scopes)
    return [
        service
        for service, needed in GOOGLE_SERVICE_SCOPES.items()
        if needed and set(needed) <= granted
    ]
