from pydantic import BaseModel, Field
from typing import Dict


class RecordingRecord(BaseModel):
    """Metadata for one recorded lecture section.

    Field names match the persisted catalog file (id/name/url/term).
    """
    id: str = Field(..., description="Subject code, e.g. COMP10001")
    name: str = Field(..., description="Subject display name")
    url: str = Field(..., description="Recording portal page for this section")
    term: str = Field(..., description="Semester/term label, e.g. 'Semester 1'")


# Catalog: link id (section token from the index page) -> record, in insertion order
Catalog = Dict[str, RecordingRecord]
