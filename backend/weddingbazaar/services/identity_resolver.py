"""Single seam between the two vendor identity formats and the canonical id.

Vendors registered through the first-generation flow carry a short legacy
code such as ``2-2025-001``; vendors created by the current flow are known
by the id of their profile record. Some vendors have both, some only one.
Everything outside this module works with ``Vendor.id`` only.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Union

from sqlalchemy.orm import Session

from .. import models
from ..utils.errors import LedgerError, UnknownVendorReference

logger = logging.getLogger(__name__)

# Canonical id, legacy code or profile id, as received from callers
VendorRef = Union[str, int]

LEGACY_CODE_RE = re.compile(r"^\d+-\d{4}-\d{3,}$")


class IdentityResolver:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find(self, raw_ref: Optional[VendorRef]) -> Optional[models.Vendor]:
        if raw_ref is None:
            return None
        ref = str(raw_ref).strip()
        if not ref:
            return None
        vendor = self.db.get(models.Vendor, ref)
        if vendor is not None:
            return vendor
        if LEGACY_CODE_RE.match(ref):
            vendor = (
                self.db.query(models.Vendor)
                .filter(models.Vendor.legacy_code == ref)
                .first()
            )
            if vendor is not None:
                return vendor
        return (
            self.db.query(models.Vendor)
            .filter(models.Vendor.profile_id == ref)
            .first()
        )

    def resolve(self, raw_ref: Optional[VendorRef]) -> models.Vendor:
        vendor = self.find(raw_ref)
        if vendor is None:
            logger.info("Unresolvable vendor reference %r", raw_ref)
            raise UnknownVendorReference(raw_ref)
        return vendor

    def canonicalize(self, raw_ref: Optional[VendorRef]) -> str:
        """Return the canonical vendor id for a reference in any known format."""
        return self.resolve(raw_ref).id

    def display_reference(self, canonical_id: str) -> str:
        vendor = self.resolve(canonical_id)
        return vendor.legacy_code or vendor.profile_id or vendor.id

    def link(
        self,
        raw_ref: VendorRef,
        legacy_code: Optional[str] = None,
        profile_id: Optional[str] = None,
    ) -> models.Vendor:
        """Attach a missing legacy code or profile id to an existing vendor.

        Linking a value the vendor already carries is a no-op. Replacing a
        different existing value, or claiming a value owned by another
        vendor, is refused. Does not commit.
        """
        vendor = self.resolve(raw_ref)
        if legacy_code is not None:
            legacy_code = legacy_code.strip()
            if not LEGACY_CODE_RE.match(legacy_code):
                raise LedgerError(
                    f"Malformed legacy vendor code: {legacy_code}",
                    {"legacy_code": "invalid_format"},
                )
            self._assign(vendor, "legacy_code", legacy_code)
        if profile_id is not None:
            self._assign(vendor, "profile_id", profile_id.strip())
        self.db.flush()
        return vendor

    def _assign(self, vendor: models.Vendor, attr: str, value: str) -> None:
        current = getattr(vendor, attr)
        if current == value:
            return
        if current is not None:
            raise LedgerError(
                f"Vendor {vendor.id} already has {attr} {current}",
                {attr: "already_linked"},
            )
        column = getattr(models.Vendor, attr)
        owner = self.db.query(models.Vendor).filter(column == value).first()
        if owner is not None and owner.id != vendor.id:
            raise LedgerError(
                f"{attr} {value} belongs to vendor {owner.id}",
                {attr: "conflict"},
            )
        setattr(vendor, attr, value)
        logger.info("Linked vendor %s %s=%s", vendor.id, attr, value)
