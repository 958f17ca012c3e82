"""
Operator Adapters
=================

Adapters for booth operators whose location pages list one venue per
bullet or table row.
"""

from __future__ import annotations

from booth_beacon.core.enums import BoothType
from booth_beacon.ingestion.adapters.base import CandidateRecord, LineListAdapter
from booth_beacon.ingestion.gazetteer import infer_booth_type


class AutofotoAdapter(LineListAdapter):
    """Autofoto, a UK operator of restored chemical booths."""

    ADAPTER_NAME = "autofoto"
    HOSTNAME = "autofoto.org"
    FALLBACK_COUNTRY = "United Kingdom"
    DEFAULT_NAME = "Autofoto Booth"


class PhotomaticaAdapter(LineListAdapter):
    """Photomatica, a US operator. Unlabelled booths are analog."""

    ADAPTER_NAME = "photomatica"
    HOSTNAME = "photomatica.com"
    FALLBACK_COUNTRY = "United States"
    DEFAULT_NAME = "Photomatica Booth"

    def finalize(self, record: CandidateRecord) -> CandidateRecord:
        record.booth_type = (
            infer_booth_type(record.description)
            or infer_booth_type(record.name)
            or BoothType.ANALOG
        )
        return record


class MetroAutophotoAdapter(LineListAdapter):
    """Metro Autophoto, an Australian operator that only runs analog booths."""

    ADAPTER_NAME = "metroautophoto"
    HOSTNAME = "metroautophoto.com.au"
    FALLBACK_COUNTRY = "Australia"
    DEFAULT_NAME = "Metro Autophoto Booth"

    def finalize(self, record: CandidateRecord) -> CandidateRecord:
        record.booth_type = BoothType.ANALOG
        return record


class ClassicPhotoboothAdapter(LineListAdapter):
    """Classic Photo Booth, a US operator."""

    ADAPTER_NAME = "classicphotobooth"
    HOSTNAME = "classicphotobooth.net"
    FALLBACK_COUNTRY = "United States"
    DEFAULT_NAME = "Classic Photo Booth"

    def finalize(self, record: CandidateRecord) -> CandidateRecord:
        record.booth_type = infer_booth_type(record.description) or BoothType.ANALOG
        return record
